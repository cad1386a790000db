"""
Generation Router — /api/generate

POST /api/generate  {"titles": [...]}
  200 — every title generated and stored
  207 — partial success (ledger lists the failures)
  500 — nothing could be generated
  400 — bad batch (empty list, more than 20 titles)
  429 — generation rate limit exceeded
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from database.schemas import GenerateRequest, GenerateResponse
from generation.errors import ValidationError
from generation.orchestrator import GenerationOrchestrator
from generation.schemas import GenerationOutcome
from routers.deps import get_orchestrator
from services.rate_limit import RateLimiter, enforce_rate_limit, get_rate_limiter

router = APIRouter(prefix="/api", tags=["generation"])

log = logging.getLogger("generation.pipeline")

_STATUS_BY_OUTCOME = {
    GenerationOutcome.SUCCESS: 200,
    GenerationOutcome.PARTIAL: 207,
    GenerationOutcome.FAILED: 500,
}


@router.post("/generate", response_model=GenerateResponse, response_model_exclude_none=True)
async def generate_questions(
    payload: GenerateRequest,
    request: Request,
    response: Response,
    limiter: RateLimiter = Depends(get_rate_limiter),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    """
    **Generate coding questions for a batch of titles.**

    Titles are processed 3 at a time; each one is generated, parsed, validated
    and stored independently, so one bad title never aborts the batch.
    Admission is checked only once the body has parsed, so a malformed request
    does not use up the client's generation quota.
    """
    enforce_rate_limit(limiter, request, response, "generation")
    log.info(f"[API] generate request: {len(payload.titles)} title(s)")

    try:
        ledger = await orchestrator.generate(payload.titles)
    except ValidationError as e:
        response.status_code = 400
        return {"success": False, "error": str(e)}

    response.status_code = _STATUS_BY_OUTCOME[ledger.outcome]

    if ledger.outcome is GenerationOutcome.FAILED:
        return GenerateResponse(success=False, data=ledger, error="Failed to generate any questions")

    message = f"Successfully generated {ledger.completed} out of {ledger.total} questions"
    if ledger.outcome is GenerationOutcome.PARTIAL:
        message += f" ({ledger.failed} failed)"
    return GenerateResponse(success=ledger.outcome is GenerationOutcome.SUCCESS, data=ledger, message=message)
