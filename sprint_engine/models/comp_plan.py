"""Deferred compensation plan models."""

from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from sprint_engine.models.enums import MilestoneMissOutcome, UpfrontPaymentTiming


class Milestone(BaseModel):
    """A performance milestone that multiplies the deferred base."""
    id: Optional[int] = Field(None, description="Client-side ordering id")
    summary: str = Field("", description="What has to happen")
    target_date: Optional[date] = Field(
        None,
        validation_alias=AliasChoices("target_date", "date"),
        description="Target date"
    )
    multiplier: float = Field(..., gt=0, description="Payout multiplier on the deferred base")

    @field_validator("target_date", mode="before")
    @classmethod
    def blank_date(cls, v: Any) -> Any:
        """Empty strings from the calculator mean no date yet."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CompPlanInputs(BaseModel):
    """Inputs captured by the compensation calculator."""
    is_deferred: bool = Field(True, description="Whether any value is deferred")
    total_project_value: Optional[float] = Field(None, ge=0, description="Defaults to the sprint price")
    upfront_payment: float = Field(0.4, ge=0, le=1, description="Fraction paid at kickoff")
    upfront_payment_timing: UpfrontPaymentTiming = Field(UpfrontPaymentTiming.ON_SIGNING)
    equity_split: float = Field(0.0, ge=0, le=1, description="Fraction of the remainder taken as equity")
    milestones: List[Milestone] = Field(default_factory=list)
    milestone_miss_outcome: MilestoneMissOutcome = Field(MilestoneMissOutcome.RENEGOTIATE)

    @field_validator("milestone_miss_outcome", mode="before")
    @classmethod
    def normalize_outcome(cls, v: Any) -> MilestoneMissOutcome:
        """Unknown policies fall back to renegotiation."""
        if isinstance(v, MilestoneMissOutcome):
            return v
        try:
            return MilestoneMissOutcome(str(v).strip().lower())
        except ValueError:
            return MilestoneMissOutcome.RENEGOTIATE

    @field_validator("upfront_payment_timing", mode="before")
    @classmethod
    def normalize_timing(cls, v: Any) -> UpfrontPaymentTiming:
        if isinstance(v, UpfrontPaymentTiming):
            return v
        try:
            return UpfrontPaymentTiming(str(v).strip().lower().replace("-", "_"))
        except ValueError:
            return UpfrontPaymentTiming.ON_SIGNING


class CompPlanOutputs(BaseModel):
    """Money amounts computed once from the inputs and trusted verbatim afterwards."""
    upfront_amount: float = 0.0
    equity_amount: float = 0.0
    deferred_amount: float = 0.0
    milestone_bonus_amount: float = 0.0
    remaining_on_completion: float = 0.0
    total_project_value: float = 0.0


class DeferredCompPlan(BaseModel):
    """A saved compensation plan. The latest one per sprint wins."""
    id: Optional[str] = None
    sprint_id: str
    label: Optional[str] = None
    inputs: CompPlanInputs
    outputs: CompPlanOutputs
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
