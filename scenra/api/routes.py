"""
API routes for Scenra

REST + SSE endpoints for the film crew roundtable and character consistency.

Status codes:
- 400 missing/invalid brief or platform (always before any LLM call)
- 502 upstream model failure (non-streaming endpoints only)
- 200 for the stream once it starts; later failures arrive as an error event
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Header, HTTPException
from fastapi.responses import StreamingResponse

from scenra.crew.roundtable import RoundtableOrchestrator
from scenra.crew.streaming import SSE_HEADERS, sse_frames, stream_roundtable
from scenra.models import (
    ConsistencyCheckRequest,
    GenerationRequest,
    GenerationResult,
    RoundtableRequestBody,
    ValidationResult,
)
from scenra.services.context_service import RoundtableInputError, aggregate, collect_raw_inputs
from scenra.services.llm import LLMError
from scenra.services.logger import get_logger
from scenra.services.series_repository import get_series_repository
from scenra.services.validation_service import (
    get_quality_assessment,
    get_quality_tier,
    validate_character_consistency,
)

# Logger for API routes
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["roundtable"])

# Global services (will be set by main app)
_orchestrator: Optional[RoundtableOrchestrator] = None


def set_orchestrator(orchestrator: Optional[RoundtableOrchestrator]):
    """Set the global orchestrator instance"""
    global _orchestrator
    _orchestrator = orchestrator


def get_orchestrator() -> Optional[RoundtableOrchestrator]:
    """Get the global orchestrator instance"""
    return _orchestrator


def _require_orchestrator() -> RoundtableOrchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=500, detail="Roundtable not initialized")
    return _orchestrator


def _validation_payload(validation: ValidationResult) -> Dict[str, Any]:
    return {
        "validation": validation.model_dump(by_alias=True),
        "qualityTier": get_quality_tier(validation.quality_score).value,
        "assessment": get_quality_assessment(validation),
    }


async def _prepare_request(
    body: RoundtableRequestBody,
    user_id: Optional[str],
    use_advanced: bool,
) -> GenerationRequest:
    """Fetch rows and aggregate. Input errors become 400 here, before any LLM call."""
    raw = await collect_raw_inputs(get_series_repository(), body, user_id=user_id)
    if not use_advanced:
        raw.advanced = None
    try:
        return aggregate(raw)
    except RoundtableInputError as e:
        logger.warning(f"⚠️ Rejected roundtable request: {e}")
        raise HTTPException(status_code=400, detail=str(e))


async def _run_roundtable(
    body: RoundtableRequestBody,
    user_id: Optional[str],
    use_advanced: bool,
) -> Dict[str, Any]:
    orchestrator = _require_orchestrator()
    app_logger = get_logger()
    job_type = "roundtable_advanced" if use_advanced else "roundtable"
    request_id = uuid.uuid4().hex

    request = await _prepare_request(body, user_id, use_advanced)
    app_logger.job_received(job_type, request_id, f"platform={request.platform.value}")
    started = time.monotonic()

    try:
        result: GenerationResult = await orchestrator.run(request)
    except LLMError as e:
        app_logger.job_failed(job_type, request_id, str(e))
        raise HTTPException(status_code=502, detail=f"Roundtable failed: {e}")

    validation = validate_character_consistency(result.optimized_prompt, request.series_characters)
    app_logger.job_completed(job_type, request_id, time.monotonic() - started)

    return {
        "success": True,
        **result.model_dump(by_alias=True),
        **_validation_payload(validation),
    }


# ==================== Roundtable ====================

@router.post("/agent/roundtable")
async def run_roundtable(
    body: RoundtableRequestBody,
    x_user_id: Optional[str] = Header(None),
):
    """
    Run the film crew roundtable for a brief.

    Returns the optimized prompt, detailed breakdown, hashtags, suggested
    shots and both discussion rounds, plus the character consistency check
    of the final prompt.
    """
    return await _run_roundtable(body, x_user_id, use_advanced=False)


@router.post("/agent/roundtable/advanced")
async def run_advanced_roundtable(
    body: RoundtableRequestBody,
    x_user_id: Optional[str] = Header(None),
):
    """
    Roundtable that also honours the user's prompt edits, requested shot
    list and additional creative guidance.
    """
    return await _run_roundtable(body, x_user_id, use_advanced=True)


@router.post("/agent/roundtable/stream")
async def stream_roundtable_endpoint(
    body: RoundtableRequestBody,
    x_user_id: Optional[str] = Header(None),
):
    """
    Stream the roundtable as Server-Sent Events.

    Events: status, turn, turn_chunk, then exactly one of result / error.
    """
    orchestrator = _require_orchestrator()
    request = await _prepare_request(body, x_user_id, use_advanced=True)
    logger.info(f"📡 Streaming roundtable: platform={request.platform.value}")

    return StreamingResponse(
        sse_frames(stream_roundtable(orchestrator, request)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ==================== Characters ====================

@router.post("/characters/validate-consistency")
async def validate_consistency(body: ConsistencyCheckRequest):
    """Check that each character's locked attributes survive in a prompt."""
    validation = validate_character_consistency(body.prompt, body.characters)
    return {
        "success": True,
        **_validation_payload(validation),
    }


@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "Scenra",
        "orchestrator_initialized": _orchestrator is not None,
    }
