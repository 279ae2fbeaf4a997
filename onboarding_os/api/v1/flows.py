"""
Flow definition endpoints for providers.

Flows are scoped to the provider's current workspace; flows of other
workspaces answer 404.
"""

import structlog
from fastapi import APIRouter, Depends, status

from onboarding_os.api.dependencies import get_current_provider, get_store
from onboarding_os.domain.schemas import (
    FlowCreate,
    FlowResponse,
    FlowUpdate,
    StepReorderRequest,
    SuccessResponse,
)
from onboarding_os.services.flows import flow_service

logger = structlog.get_logger()

router = APIRouter(prefix="/flows", tags=["Flows"])


@router.post("", response_model=FlowResponse, status_code=status.HTTP_201_CREATED)
async def create_flow(
    request: FlowCreate,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """Create a draft flow. Step order follows the order of the steps list."""
    return await flow_service.create_flow(request, current_provider, store)


@router.get("/{flow_id}", response_model=FlowResponse)
async def get_flow(
    flow_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    return await flow_service.get_flow(flow_id, current_provider, store)


@router.put("/{flow_id}", response_model=FlowResponse)
async def update_flow(
    flow_id: str,
    request: FlowUpdate,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """
    Update name and description. Passing steps replaces them wholesale,
    which is refused (409) once a client has been assigned the flow.
    """
    return await flow_service.update_flow(flow_id, request, current_provider, store)


@router.put("/{flow_id}/steps/order", response_model=FlowResponse)
async def reorder_flow_steps(
    flow_id: str,
    request: StepReorderRequest,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    return await flow_service.reorder_steps(flow_id, request.step_ids, current_provider, store)


@router.post("/{flow_id}/publish", response_model=FlowResponse)
async def publish_flow(
    flow_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    return await flow_service.transition_flow(flow_id, "publish", current_provider, store)


@router.post("/{flow_id}/archive", response_model=FlowResponse)
async def archive_flow(
    flow_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    return await flow_service.transition_flow(flow_id, "archive", current_provider, store)


@router.post("/{flow_id}/restore", response_model=FlowResponse)
async def restore_flow(
    flow_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """Move an archived flow back to draft."""
    return await flow_service.transition_flow(flow_id, "restore", current_provider, store)


@router.delete("/{flow_id}", response_model=SuccessResponse)
async def delete_flow(
    flow_id: str,
    current_provider: dict = Depends(get_current_provider),
    store=Depends(get_store),
):
    """Refused while any NOT_STARTED or IN_PROGRESS onboarding uses the flow."""
    await flow_service.delete_flow(flow_id, current_provider, store)
    return SuccessResponse()
