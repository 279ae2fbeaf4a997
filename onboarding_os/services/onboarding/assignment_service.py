"""
Provider-side onboarding operations: assign a flow to a client, read an
onboarding, send a manual reminder and delete a client.
"""

from typing import Any, Dict, Optional

import structlog

from onboarding_os.core.exceptions import (
    ClientNotFoundError,
    FlowNotFoundError,
    FlowNotPublishedError,
    InvalidStateTransitionError,
    OnboardingNotFoundError,
    ReminderNotAllowedError,
)
from onboarding_os.core.security import security
from onboarding_os.domain.progress import calculate_progress
from onboarding_os.domain.schemas import (
    AssignFlowRequest,
    AssignFlowResponse,
    OnboardingDetailResponse,
    OnboardingStatus,
    StepProgressStatus,
)
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.notifications import send_reminder
from onboarding_os.services.onboarding.views import build_onboarding_detail
from onboarding_os.services.workspace_access import ensure_same_workspace
from onboarding_os.state_machines import FlowDefinitionMachine

logger = structlog.get_logger(__name__)


async def assign_flow(
    request: AssignFlowRequest,
    provider: Dict[str, Any],
    store=supabase_client,
) -> Dict[str, Any]:
    """
    Create an onboarding for a client from a published flow.

    One NOT_STARTED step progress row is created per flow step, in flow order,
    together with the onboarding.

    Returns:
        {"response": AssignFlowResponse, "onboarding": row, "client": row}

    Raises:
        ClientNotFoundError / FlowNotFoundError: not in the provider's workspace
        FlowNotPublishedError: flow is draft or archived
        InvalidStateTransitionError: flow has no steps
    """
    client = ensure_same_workspace(await store.get_client(request.client_id), provider, ClientNotFoundError, "Client")
    flow = ensure_same_workspace(await store.get_flow(request.flow_id), provider, FlowNotFoundError, "Flow")

    machine = FlowDefinitionMachine(record=dict(flow), actor_id=provider.get("id"))
    if not machine.is_assignable:
        raise FlowNotPublishedError(flow["id"], machine.status)

    steps = flow.get("steps") or []
    if not steps:
        raise InvalidStateTransitionError(
            "Flow has no steps to assign",
            details={"flow_id": flow["id"]},
        )

    token = security.generate_portal_token()
    record = {
        "client_id": client["id"],
        "flow_id": flow["id"],
        "status": OnboardingStatus.NOT_STARTED.value,
        "onboarding_link_token": token,
        "priority": request.priority.value,
        "due_date": request.due_date.isoformat() if request.due_date else None,
    }
    step_rows = [
        {
            "step_id": step["id"],
            "status": StepProgressStatus.NOT_STARTED.value,
            "data": {},
        }
        for step in steps
    ]

    onboarding = await store.create_onboarding(record, step_rows)

    logger.info(
        "flow_assigned",
        onboarding_id=onboarding["id"],
        client_id=client["id"],
        flow_id=flow["id"],
        step_count=len(step_rows),
        user_id=provider.get("id"),
    )

    response = AssignFlowResponse(
        onboarding_id=onboarding["id"],
        portal_token=token,
        portal_url=security.build_portal_url(token),
    )
    return {"response": response, "onboarding": onboarding, "client": client}


async def get_onboarding_detail(
    onboarding_id: str,
    provider: Dict[str, Any],
    store=supabase_client,
) -> OnboardingDetailResponse:
    onboarding = await store.get_onboarding(onboarding_id)
    if not onboarding:
        raise OnboardingNotFoundError("Onboarding not found")
    ensure_same_workspace(await store.get_client(onboarding["client_id"]), provider, OnboardingNotFoundError, "Onboarding")

    steps = await store.list_step_progress(onboarding_id)
    return build_onboarding_detail(onboarding, steps)


async def send_manual_reminder(
    client_id: str,
    provider: Dict[str, Any],
    store=supabase_client,
) -> Dict[str, Any]:
    """
    Remind a client about their most recent onboarding that is not COMPLETED.

    Raises:
        ClientNotFoundError: client not in the provider's workspace
        ReminderNotAllowedError: the client has no onboarding left to complete
    """
    client = ensure_same_workspace(await store.get_client(client_id), provider, ClientNotFoundError, "Client")

    onboardings = await store.list_client_onboardings(client_id)
    if not onboardings:
        raise ReminderNotAllowedError("No onboarding found for this client")

    pending: Optional[Dict[str, Any]] = next(
        (o for o in onboardings if o.get("status") != OnboardingStatus.COMPLETED.value),
        None,
    )
    if pending is None:
        raise ReminderNotAllowedError("Onboarding already completed")

    steps = await store.list_step_progress(pending["id"])
    progress = calculate_progress(steps)
    workspace = await store.get_workspace(client["workspace_id"])

    result = await send_reminder(pending, client, workspace, progress, automated=False, store=store)
    return {"success": True, "onboarding_id": pending["id"], "mock": bool(result.get("mock"))}


async def delete_client(
    client_id: str,
    provider: Dict[str, Any],
    store=supabase_client,
) -> None:
    """Delete a client together with every onboarding and step progress row it owns."""
    ensure_same_workspace(await store.get_client(client_id), provider, ClientNotFoundError, "Client")
    await store.delete_client(client_id)
    logger.info("client_removed", client_id=client_id, user_id=provider.get("id"))
