"""Result models for generation, audit records, notifications and agreements."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from sprint_engine.models.enums import AIResponseStatus


class AIUsage(BaseModel):
    """Token usage reported by the provider."""
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class CompletionResponse(BaseModel):
    """Raw completion returned by the LLM provider boundary."""
    content: str = Field("", description="Raw message content")
    model: str = Field(..., description="Model that served the request")
    provider_response_id: Optional[str] = Field(None, description="Provider's response id")
    finish_reason: Optional[str] = None
    usage: AIUsage = Field(default_factory=AIUsage)


class AIResponseRecord(BaseModel):
    """Audit row for one model call, stored before any draft is built."""
    id: Optional[str] = None
    document_id: Optional[str] = None
    model: str
    idempotency_key: Optional[str] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    raw_response: str = ""
    response_json: Optional[Dict[str, Any]] = None
    status: AIResponseStatus = AIResponseStatus.RECEIVED
    error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RecommendedDeliverable(BaseModel):
    """A deliverable the model recommended that resolved to an active catalog row."""
    deliverable_id: str
    quantity: int = 1
    reason: Optional[str] = None


class SprintRecommendation(BaseModel):
    """Model output after catalog validation."""
    title: Optional[str] = None
    sprint_package_id: Optional[str] = None
    deliverables: List[RecommendedDeliverable] = Field(default_factory=list)
    dropped_package_id: Optional[str] = None
    dropped_deliverable_ids: List[str] = Field(default_factory=list)
    draft: Dict[str, Any] = Field(default_factory=dict, description="Validated model object")

    @property
    def is_empty(self) -> bool:
        return not self.sprint_package_id and not self.deliverables


class NotificationResult(BaseModel):
    """Outcome of a best-effort notification send."""
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class GenerationResult(BaseModel):
    """Outcome of a successful proposal generation."""
    success: bool = True
    sprint_draft_id: str
    ai_response_id: Optional[str] = None
    title: str
    sprint_package_id: Optional[str] = None
    deliverable_count: int = 0
    needs_review: bool = Field(False, description="True when no catalog item survived validation")
    dropped_references: List[str] = Field(default_factory=list)
    notification: Optional[NotificationResult] = None


class AgreementMeta(BaseModel):
    """Metadata kept beside, not inside, the agreement text."""
    sprint_title: str
    client_company: str
    total_points: float
    total_price: float
    deliverable_count: int
    has_comp_plan: bool
    is_deferred: bool
    generated_at: datetime = Field(default_factory=datetime.utcnow)


class AgreementDocument(BaseModel):
    """Rendered agreement markdown plus metadata."""
    markdown: str
    meta: AgreementMeta
