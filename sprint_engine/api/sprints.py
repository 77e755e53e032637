"""Sprint API Routes - Generation, line edits, comp plans and agreements."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from sprint_engine.core.errors import SprintEngineError
from sprint_engine.models import AgreementDocument, DeferredCompPlan, GenerationResult, SprintDraft
from sprint_engine.services.agreement import agreement_service
from sprint_engine.services.comp_plan import comp_plan_service
from sprint_engine.services.proposal_generator import proposal_generator
from sprint_engine.services.sprint_builder import sprint_builder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sprints", tags=["sprints"])


class GenerateRequest(BaseModel):
    """Request to generate a sprint for a stored document."""
    document_id: str = Field(..., min_length=1)
    model: Optional[str] = None
    idempotency_key: Optional[str] = None


class AddDeliverableRequest(BaseModel):
    """Add a catalog deliverable to a draft."""
    deliverable_id: str = Field(..., min_length=1)
    complexity_score: Any = 1.0
    quantity: Any = 1


class ComplexityRequest(BaseModel):
    complexity_score: Any


class ScopeRequest(BaseModel):
    """Scope override and notes for one line."""
    custom_scope: Optional[str] = None
    notes: Optional[str] = None


class CompPlanRequest(BaseModel):
    """Calculator inputs; outputs are computed server-side."""
    inputs: Dict[str, Any]
    label: Optional[str] = None


class CompPlanListResponse(BaseModel):
    plans: List[DeferredCompPlan]


class AgreementRequest(BaseModel):
    client_company: Optional[str] = None


def _unexpected(action: str, e: Exception) -> HTTPException:
    logger.error(f"Failed to {action}: {e}")
    return HTTPException(status_code=500, detail=f"Failed to {action}: {str(e)}")


# ===========================================
# Generation
# ===========================================

@router.post(
    "/generate",
    response_model=GenerationResult,
    status_code=201,
    summary="Generate Sprint From Document"
)
async def generate_sprint(request: GenerateRequest) -> GenerationResult:
    """Run the proposal generator for a stored intake document."""
    try:
        return await proposal_generator.generate(
            request.document_id,
            model=request.model,
            idempotency_key=request.idempotency_key,
        )
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("generate sprint", e)


# ===========================================
# Sprint Drafts & Lines
# ===========================================

@router.get("/{sprint_id}", response_model=SprintDraft, summary="Get Sprint Draft")
async def get_sprint(sprint_id: str) -> SprintDraft:
    try:
        return await sprint_builder.load_sprint(sprint_id)
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("load sprint", e)


@router.post("/{sprint_id}/deliverables", response_model=SprintDraft, summary="Add Deliverable")
async def add_deliverable(sprint_id: str, request: AddDeliverableRequest) -> SprintDraft:
    """Add an active deliverable to a draft and recompute totals."""
    try:
        return await sprint_builder.add_line(
            sprint_id,
            request.deliverable_id,
            complexity=request.complexity_score,
            quantity=request.quantity,
        )
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("add deliverable", e)


@router.delete(
    "/{sprint_id}/deliverables/{deliverable_id}",
    response_model=SprintDraft,
    summary="Remove Deliverable"
)
async def remove_deliverable(sprint_id: str, deliverable_id: str) -> SprintDraft:
    try:
        return await sprint_builder.remove_line(sprint_id, deliverable_id)
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("remove deliverable", e)


@router.patch(
    "/{sprint_id}/deliverables/{deliverable_id}/complexity",
    response_model=SprintDraft,
    summary="Set Deliverable Complexity"
)
async def set_complexity(sprint_id: str, deliverable_id: str, request: ComplexityRequest) -> SprintDraft:
    """Accepts only 0.75, 1.0, 1.5 or 2.0."""
    try:
        return await sprint_builder.set_complexity(sprint_id, deliverable_id, request.complexity_score)
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("update complexity", e)


@router.patch(
    "/{sprint_id}/deliverables/{deliverable_id}/scope",
    response_model=SprintDraft,
    summary="Update Deliverable Scope"
)
async def update_scope(sprint_id: str, deliverable_id: str, request: ScopeRequest) -> SprintDraft:
    try:
        return await sprint_builder.update_scope(
            sprint_id,
            deliverable_id,
            custom_scope=request.custom_scope,
            notes=request.notes,
        )
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("update scope", e)


@router.post("/{sprint_id}/recalculate", response_model=SprintDraft, summary="Recalculate Totals")
async def recalculate(sprint_id: str) -> SprintDraft:
    """Recompute every line and the sprint totals from stored lines."""
    try:
        return await sprint_builder.recalculate(sprint_id)
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("recalculate sprint", e)


# ===========================================
# Compensation Plans
# ===========================================

@router.post(
    "/{sprint_id}/comp-plans",
    response_model=DeferredCompPlan,
    status_code=201,
    summary="Save Compensation Plan"
)
async def create_comp_plan(sprint_id: str, request: CompPlanRequest) -> DeferredCompPlan:
    try:
        return await comp_plan_service.create_plan(sprint_id, request.inputs, label=request.label)
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("save comp plan", e)


@router.get("/{sprint_id}/comp-plans", response_model=CompPlanListResponse, summary="List Compensation Plans")
async def list_comp_plans(sprint_id: str) -> CompPlanListResponse:
    """Plans for a sprint, newest first."""
    try:
        return CompPlanListResponse(plans=await comp_plan_service.list_plans(sprint_id))
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("load comp plans", e)


# ===========================================
# Agreement
# ===========================================

@router.post("/{sprint_id}/agreement", response_model=AgreementDocument, summary="Generate Agreement")
async def generate_agreement(sprint_id: str, request: Optional[AgreementRequest] = None) -> AgreementDocument:
    """Compose the agreement from the sprint, its lines and its latest comp plan."""
    try:
        client_company = request.client_company if request else None
        return await agreement_service.generate(sprint_id, client_company=client_company)
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("generate agreement", e)


@router.get("/{sprint_id}/agreement", summary="Get Stored Agreement")
async def get_agreement(sprint_id: str) -> Dict[str, Any]:
    try:
        stored = await agreement_service.get_stored(sprint_id)
        if not stored["agreement"]:
            return {**stored, "message": "No agreement has been generated yet"}
        return stored
    except SprintEngineError:
        raise
    except Exception as e:
        raise _unexpected("load agreement", e)
