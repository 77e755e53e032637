"""Models package - All Pydantic models organized by domain."""

from sprint_engine.models.enums import (
    AIResponseStatus,
    MilestoneMissOutcome,
    SprintStatus,
    UpfrontPaymentTiming,
)
from sprint_engine.models.intake import ClientProfile, IntakeAnswer
from sprint_engine.models.catalog import CatalogDeliverable, CatalogPackage, PackageDeliverableLink
from sprint_engine.models.sprint import (
    BaseEconomics,
    LineTotals,
    PointScale,
    SprintDeliverableLine,
    SprintDraft,
    SprintTotals,
)
from sprint_engine.models.comp_plan import (
    CompPlanInputs,
    CompPlanOutputs,
    DeferredCompPlan,
    Milestone,
)
from sprint_engine.models.results import (
    AgreementDocument,
    AgreementMeta,
    AIResponseRecord,
    AIUsage,
    CompletionResponse,
    GenerationResult,
    NotificationResult,
    RecommendedDeliverable,
    SprintRecommendation,
)

__all__ = [
    # Enums
    "AIResponseStatus",
    "MilestoneMissOutcome",
    "SprintStatus",
    "UpfrontPaymentTiming",
    # Intake
    "ClientProfile",
    "IntakeAnswer",
    # Catalog
    "CatalogDeliverable",
    "CatalogPackage",
    "PackageDeliverableLink",
    # Sprint
    "BaseEconomics",
    "LineTotals",
    "PointScale",
    "SprintDeliverableLine",
    "SprintDraft",
    "SprintTotals",
    # Compensation
    "CompPlanInputs",
    "CompPlanOutputs",
    "DeferredCompPlan",
    "Milestone",
    # Results
    "AgreementDocument",
    "AgreementMeta",
    "AIResponseRecord",
    "AIUsage",
    "CompletionResponse",
    "GenerationResult",
    "NotificationResult",
    "RecommendedDeliverable",
    "SprintRecommendation",
]
