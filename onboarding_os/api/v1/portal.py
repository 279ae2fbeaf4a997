"""
Client portal endpoints.

The portal token in the request is the only credential. Every endpoint is
rate limited per IP since tokens are bearer secrets.
"""

import structlog
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from onboarding_os.api.dependencies import get_event_publisher, get_store
from onboarding_os.api.rate_limit import PORTAL_RATE_LIMIT, limiter
from onboarding_os.domain.schemas import (
    CompleteStepRequest,
    CompleteStepResponse,
    PortalRequest,
    PortalViewResponse,
    StartStepRequest,
    StepProgressResponse,
    UploadFileResponse,
)
from onboarding_os.services import onboarding as onboarding_service
from onboarding_os.services.onboarding.views import build_step_progress

logger = structlog.get_logger()

router = APIRouter(prefix="/portal", tags=["Client Portal"])


@router.post("/onboarding", response_model=PortalViewResponse)
@limiter.limit(PORTAL_RATE_LIMIT)
async def get_portal_onboarding(
    request: Request,
    body: PortalRequest,
    store=Depends(get_store),
):
    """Everything the portal renders: branding, progress and ordered steps."""
    return await onboarding_service.get_portal_view(body.token, store)


@router.post("/start-step", response_model=StepProgressResponse)
@limiter.limit(PORTAL_RATE_LIMIT)
async def start_step(
    request: Request,
    body: StartStepRequest,
    store=Depends(get_store),
    publisher=Depends(get_event_publisher),
):
    step_progress = await onboarding_service.start_step(
        body.token, body.step_progress_id, store=store, publisher=publisher
    )
    return build_step_progress(step_progress)


@router.post("/complete-step", response_model=CompleteStepResponse)
@limiter.limit(PORTAL_RATE_LIMIT)
async def complete_step(
    request: Request,
    body: CompleteStepRequest,
    store=Depends(get_store),
    publisher=Depends(get_event_publisher),
):
    """
    Validate and complete a step.

    Invalid data answers 422 with per-field errors and nothing is saved.
    Resubmitting a completed step is accepted and changes nothing.
    """
    result = await onboarding_service.submit_step(
        body.token, body.step_progress_id, body.data, store=store, publisher=publisher
    )
    return CompleteStepResponse(all_completed=result.all_completed)


@router.post("/upload-file", response_model=UploadFileResponse)
@limiter.limit(PORTAL_RATE_LIMIT)
async def upload_file(
    request: Request,
    token: str = Form(...),
    step_progress_id: str = Form(..., alias="stepProgressId"),
    file: UploadFile = File(...),
    store=Depends(get_store),
):
    """
    Store one file for a FILE_UPLOAD step. The step is completed later by
    submitting the collected file list to /portal/complete-step.
    """
    content = await file.read()
    return await onboarding_service.accept_upload(
        token,
        step_progress_id,
        file.filename or "upload",
        content,
        store=store,
    )
