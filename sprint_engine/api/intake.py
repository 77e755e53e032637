"""Intake API Routes - Form submission webhook and audit retrieval."""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, Request

from sprint_engine.core.database import db_service
from sprint_engine.core.errors import SprintEngineError
from sprint_engine.models import AIResponseRecord, GenerationResult
from sprint_engine.services.intake import normalize_submission
from sprint_engine.services.proposal_generator import proposal_generator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["intake"])


# ===========================================
# Intake Webhook
# ===========================================

@router.post(
    "/webhook/intake",
    response_model=GenerationResult,
    status_code=201,
    summary="Process Intake Form Submission"
)
async def intake_webhook(
    request: Request,
    model: Optional[str] = Query(None, description="Requested model (allow-listed)")
) -> GenerationResult:
    """
    Store a form submission and generate its sprint draft.

    Returns 201 with the new sprint draft, 202 with an ``ai_response_id``
    when the model answered but its output was unusable, and a distinct
    error body for every other failure.
    """
    try:
        raw_data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")

    if not isinstance(raw_data, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")

    try:
        logger.info(f"Received intake webhook with {len(raw_data)} top-level key(s)")
        return await proposal_generator.process_intake(raw_data, model=model)

    except SprintEngineError:
        raise
    except Exception as e:
        logger.error(f"Intake webhook error: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to process: {str(e)}")


@router.post("/intake/preview", summary="Preview Normalized Client Profile")
async def preview_intake(request: Request) -> Dict[str, Any]:
    """Normalize a submission without storing it or calling the model."""
    try:
        raw_data = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")

    profile = normalize_submission(raw_data)
    return {
        "profile": profile.model_dump(exclude_none=True),
        "context": [{"label": label, "value": value} for label, value in profile.context_lines()],
    }


# ===========================================
# Audit Retrieval
# ===========================================

@router.get(
    "/ai-responses/{response_id}",
    response_model=AIResponseRecord,
    summary="Get Stored Model Response"
)
async def get_ai_response(response_id: str) -> AIResponseRecord:
    """Raw model response and usage, kept even when no sprint was created."""
    try:
        record = await db_service.get_ai_response(response_id)

        if not record:
            raise HTTPException(status_code=404, detail=f"Model response not found: {response_id}")

        return record

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Model response lookup error: {e}")
        raise HTTPException(status_code=500, detail=str(e))
