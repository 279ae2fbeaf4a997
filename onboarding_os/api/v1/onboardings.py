"""
Provider-side onboarding endpoints: assign a flow, read progress, remind a
client and delete a client.
"""

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, status

from onboarding_os.api.dependencies import get_current_provider, get_store
from onboarding_os.domain.schemas import (
    AssignFlowRequest,
    AssignFlowResponse,
    ManualReminderRequest,
    ManualReminderResponse,
    OnboardingDetailResponse,
    SuccessResponse,
)
from onboarding_os.services import onboarding as onboarding_service
from onboarding_os.services.notifications import send_welcome

logger = structlog.get_logger()

router = APIRouter(tags=["Onboardings"])


@router.post("/onboardings", response_model=AssignFlowResponse, status_code=status.HTTP_201_CREATED)
async def assign_flow(
    request: AssignFlowRequest,
    background_tasks: BackgroundTasks,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """
    Assign a published flow to a client.

    The welcome email (sendWelcomeEmail) goes out after the response; a
    failed send does not undo the assignment.
    """
    result = await onboarding_service.assign_flow(request, current_provider, store)

    if request.send_welcome_email:
        client = result["client"]
        workspace = await store.get_workspace(client["workspace_id"])
        background_tasks.add_task(send_welcome, result["onboarding"], client, workspace, store)

    return result["response"]


@router.get("/onboardings/{onboarding_id}", response_model=OnboardingDetailResponse)
async def get_onboarding(
    onboarding_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """Onboarding with derived status, progress and its ordered steps."""
    return await onboarding_service.get_onboarding_detail(onboarding_id, current_provider, store)


@router.post("/reminders", response_model=ManualReminderResponse)
async def send_reminder(
    request: ManualReminderRequest,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    result = await onboarding_service.send_manual_reminder(request.client_id, current_provider, store)
    return ManualReminderResponse(onboarding_id=result["onboarding_id"], mock=result["mock"])


@router.delete("/clients/{client_id}", response_model=SuccessResponse)
async def delete_client(
    client_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """Delete a client with all of its onboardings and step progress."""
    await onboarding_service.delete_client(client_id, current_provider, store)
    return SuccessResponse()
