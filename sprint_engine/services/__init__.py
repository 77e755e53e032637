"""Services module - Intake, pricing, generation, sprint edits and agreements."""

from sprint_engine.services.intake import normalize_submission
from sprint_engine.services.proposal_generator import ProposalGenerator, proposal_generator
from sprint_engine.services.sprint_builder import SprintBuilder, sprint_builder
from sprint_engine.services.comp_plan import CompPlanService, comp_plan_service, compute_outputs
from sprint_engine.services.agreement import AgreementService, agreement_service, compose
from sprint_engine.services.notifications import NotificationHook, notification_hook

__all__ = [
    "normalize_submission",
    "ProposalGenerator",
    "proposal_generator",
    "SprintBuilder",
    "sprint_builder",
    "CompPlanService",
    "comp_plan_service",
    "compute_outputs",
    "AgreementService",
    "agreement_service",
    "compose",
    "NotificationHook",
    "notification_hook",
]
