"""Sprint models - Drafts, deliverable lines and computed totals."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sprint_engine.models.enums import SprintStatus


class BaseEconomics(BaseModel):
    """Per-unit points, hours and price of a deliverable at normal complexity."""
    points: float = Field(0.0, ge=0, description="Base point estimate")
    hours: float = Field(0.0, ge=0, description="Base fixed hours")
    price: float = Field(0.0, ge=0, description="Base fixed price")


class LineTotals(BaseModel):
    """Economics of one line after quantity and complexity are applied."""
    points: float = 0.0
    hours: float = 0.0
    price: float = 0.0


class PointScale(BaseModel):
    """Client-facing hours and price for a point value."""
    hours: float
    price: float


class SprintTotals(BaseModel):
    """Aggregate of every line in a sprint."""
    total_points: float = 0.0
    total_hours: float = 0.0
    total_price: float = 0.0
    count: int = Field(0, description="Sum of line quantities")


class SprintDeliverableLine(BaseModel):
    """
    A deliverable inside a sprint.

    The catalog reference may be null once the catalog row is gone; the
    snapshot fields keep the line renderable. ``custom_*`` columns are
    always written from ``line_totals`` and never edited directly.
    """
    id: Optional[str] = Field(None, description="Line identifier")
    sprint_draft_id: Optional[str] = Field(None, description="Owning sprint")
    deliverable_id: Optional[str] = Field(None, description="Catalog deliverable, if still linked")

    # Snapshot at time of add
    deliverable_name: Optional[str] = Field(None, description="Name when added")
    deliverable_category: Optional[str] = Field(None, description="Category when added")
    deliverable_scope: Optional[str] = Field(None, description="Catalog scope when added")
    base_points: float = Field(0.0, ge=0)
    base_hours: float = Field(0.0, ge=0)
    base_price: float = Field(0.0, ge=0)

    quantity: int = Field(1, ge=1)
    complexity_score: float = Field(1.0)

    custom_points: Optional[float] = None
    custom_hours: Optional[float] = None
    custom_price: Optional[float] = None
    custom_scope: Optional[str] = Field(None, description="Per-line scope override")
    notes: Optional[str] = Field(None, description="Sprint-specific free-form notes")

    created_at: Optional[datetime] = None

    @property
    def base(self) -> BaseEconomics:
        return BaseEconomics(points=self.base_points, hours=self.base_hours, price=self.base_price)

    @property
    def display_name(self) -> str:
        return self.deliverable_name or "Untitled"


class SprintDraft(BaseModel):
    """A priced proposal instance composed of deliverable lines."""
    id: Optional[str] = Field(None, description="Sprint identifier")
    document_id: Optional[str] = Field(None, description="Intake document this sprint came from")
    ai_response_id: Optional[str] = Field(None, description="Audit row of the model response")
    title: str = Field("Sprint Plan", description="Sprint title")
    status: SprintStatus = Field(SprintStatus.DRAFT, description="Lifecycle state")
    sprint_package_id: Optional[str] = Field(None, description="Seeding package, if any")
    draft: Dict[str, Any] = Field(default_factory=dict, description="Validated model recommendation")

    total_estimate_points: float = 0.0
    total_fixed_hours: float = 0.0
    total_fixed_price: float = 0.0
    deliverable_count: int = 0

    project_name: Optional[str] = Field(None, description="Client company for agreements")
    start_date: Optional[date] = None
    due_date: Optional[date] = None

    agreement_markdown: Optional[str] = None
    agreement_generated_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    lines: List[SprintDeliverableLine] = Field(default_factory=list)

    class Config:
        from_attributes = True

    @property
    def totals(self) -> SprintTotals:
        return SprintTotals(
            total_points=self.total_estimate_points,
            total_hours=self.total_fixed_hours,
            total_price=self.total_fixed_price,
            count=self.deliverable_count,
        )
