"""
Worker callback endpoints, invoked exclusively by RQ workers.

RQ jobs are thin HTTP callers. All business logic lives here and in the
service layer (onboarding_os/services/). This keeps DB access, error handling
and domain logic consolidated in the API process.

Security: every request must carry X-Internal-Secret: <INTERNAL_API_SECRET>.
          Missing or wrong secret answers 403.

Response contract for the worker:
      200  handled; per-handler outcomes are in the body
      404  onboarding no longer exists, worker must NOT retry
      5xx  transient failure, worker SHOULD retry

URL prefix: /api/v1/worker/...
"""

import structlog
from fastapi import APIRouter, Depends

from onboarding_os.api.dependencies import get_store, verify_internal_secret
from onboarding_os.domain.schemas import CompletionHandlersResponse, OnboardingCompletedEvent
from onboarding_os.services.onboarding.handlers import run_completion_handlers

logger = structlog.get_logger()

router = APIRouter(
    prefix="/worker",
    tags=["Worker Callbacks"],
    dependencies=[Depends(verify_internal_secret)],
)


@router.post("/events/onboarding-completed", response_model=CompletionHandlersResponse)
async def onboarding_completed(event: OnboardingCompletedEvent, store=Depends(get_store)):
    """Run the completion handlers for one OnboardingCompleted event."""
    logger.info("onboarding_completed_event_received", onboarding_id=event.onboarding_id)
    results = await run_completion_handlers(event, store)
    return CompletionHandlersResponse(onboarding_id=event.onboarding_id, results=results)
