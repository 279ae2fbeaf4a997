"""
Flow definition management for providers.

Steps are stored with a dense zero-based step_order. Once any onboarding
references a flow its steps are locked: onboardings hold step progress rows
keyed by step id, so replacing or reordering them would desynchronize those
rows from their templates.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog

from onboarding_os.core.exceptions import (
    FlowHasActiveOnboardingsError,
    FlowLockedError,
    FlowNotFoundError,
    FieldError,
    InvalidStateTransitionError,
    StepValidationError,
)
from onboarding_os.domain.schemas import (
    ACTIVE_ONBOARDING_STATUSES,
    FlowCreate,
    FlowResponse,
    FlowUpdate,
    StepTemplateInput,
)
from onboarding_os.domain.step_config import ContractConfig
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.onboarding.views import build_step_template
from onboarding_os.services.steps import dump_step_config, parse_step_config
from onboarding_os.services.workspace_access import ensure_same_workspace, require_workspace_id
from onboarding_os.state_machines import FlowDefinitionMachine
from onboarding_os.utils.sanitize import sanitize_plain_text
from statemachine.exceptions import TransitionNotAllowed

logger = structlog.get_logger(__name__)


def build_step_rows(steps: Sequence[StepTemplateInput]) -> List[Dict[str, Any]]:
    """
    Validate each step's config against its type and number the steps by
    position.

    Raises:
        StepConfigError: a config does not match its step type
    """
    rows = []
    for position, step in enumerate(steps):
        config = parse_step_config(step.type, step.config)
        if isinstance(config, ContractConfig):
            config = config.model_copy(update={"body_text": sanitize_plain_text(config.body_text)})
        rows.append(
            {
                "step_order": position,
                "type": step.type.value,
                "title": sanitize_plain_text(step.title),
                "description": sanitize_plain_text(step.description) or None,
                "config": dump_step_config(config),
            }
        )
    return rows


def build_flow_response(flow: Dict[str, Any]) -> FlowResponse:
    return FlowResponse(
        id=flow["id"],
        name=flow["name"],
        description=flow.get("description"),
        status=flow["status"],
        steps=[build_step_template(step) for step in flow.get("steps") or []],
        created_at=flow.get("created_at"),
        updated_at=flow.get("updated_at"),
    )


async def _load_flow(flow_id: str, provider: Dict[str, Any], store) -> Dict[str, Any]:
    flow = await store.get_flow(flow_id)
    return ensure_same_workspace(flow, provider, FlowNotFoundError, "Flow")


async def _ensure_steps_unlocked(flow_id: str, store) -> None:
    if await store.count_onboardings_for_flow(flow_id) > 0:
        logger.info("flow_steps_locked", flow_id=flow_id)
        raise FlowLockedError(flow_id)


async def create_flow(request: FlowCreate, provider: Dict[str, Any], store=supabase_client) -> FlowResponse:
    """Create a DRAFT flow with its steps."""
    workspace_id = require_workspace_id(provider)
    step_rows = build_step_rows(request.steps)

    record = {
        "workspace_id": workspace_id,
        "name": sanitize_plain_text(request.name),
        "description": sanitize_plain_text(request.description) or None,
        "status": FlowDefinitionMachine.draft.value,
    }
    flow = await store.create_flow(record, step_rows)

    logger.info(
        "flow_definition_created",
        flow_id=flow["id"],
        workspace_id=workspace_id,
        step_count=len(step_rows),
        user_id=provider.get("id"),
    )
    return build_flow_response(flow)


async def get_flow(flow_id: str, provider: Dict[str, Any], store=supabase_client) -> FlowResponse:
    return build_flow_response(await _load_flow(flow_id, provider, store))


async def update_flow(
    flow_id: str,
    request: FlowUpdate,
    provider: Dict[str, Any],
    store=supabase_client,
) -> FlowResponse:
    """
    Update name/description and, when given, replace the steps wholesale.

    Raises:
        FlowNotFoundError
        FlowLockedError: steps given for a flow that onboardings reference
        StepConfigError
    """
    await _load_flow(flow_id, provider, store)

    step_rows: Optional[List[Dict[str, Any]]] = None
    if request.steps is not None:
        step_rows = build_step_rows(request.steps)
        await _ensure_steps_unlocked(flow_id, store)

    updates: Dict[str, Any] = {"updated_at": datetime.now(timezone.utc).isoformat()}
    if request.name is not None:
        updates["name"] = sanitize_plain_text(request.name)
    if "description" in request.model_fields_set:
        updates["description"] = sanitize_plain_text(request.description) or None

    await store.update_flow(flow_id, updates)
    if step_rows is not None:
        await store.replace_flow_steps(flow_id, step_rows)

    logger.info(
        "flow_definition_updated",
        flow_id=flow_id,
        steps_replaced=step_rows is not None,
        user_id=provider.get("id"),
    )
    return build_flow_response(await store.get_flow(flow_id))


async def reorder_steps(
    flow_id: str,
    step_ids: List[str],
    provider: Dict[str, Any],
    store=supabase_client,
) -> FlowResponse:
    """
    Reassign every step_order from the position of its id in step_ids.

    Raises:
        StepValidationError: step_ids is not exactly the flow's step ids
        FlowLockedError
    """
    flow = await _load_flow(flow_id, provider, store)

    existing = [step["id"] for step in flow.get("steps") or []]
    if len(step_ids) != len(set(step_ids)) or set(step_ids) != set(existing):
        raise StepValidationError(
            [FieldError("Step ids must list every step of the flow exactly once", field="stepIds")],
            details={"flow_id": flow_id},
        )

    await _ensure_steps_unlocked(flow_id, store)
    await store.update_step_orders(flow_id, step_ids)
    return build_flow_response(await store.get_flow(flow_id))


async def transition_flow(
    flow_id: str,
    event: str,
    provider: Dict[str, Any],
    store=supabase_client,
) -> FlowResponse:
    """
    Apply a lifecycle event (publish, archive, restore).

    Raises:
        FlowNotFoundError
        InvalidStateTransitionError: event not allowed from the current status,
            a publish of a flow without steps, or a concurrent status change
    """
    flow = await _load_flow(flow_id, provider, store)
    machine = FlowDefinitionMachine(record=dict(flow), actor_id=provider.get("id"))
    source = machine.status

    if event == "publish" and not flow.get("steps"):
        raise InvalidStateTransitionError(
            "Add at least one step before publishing",
            details={"flow_id": flow_id},
        )

    if event not in machine.allowed_event_names:
        raise InvalidStateTransitionError(
            f"Cannot {event} a flow in status {source}",
            details={"flow_id": flow_id, "status": source, "allowed_events": machine.allowed_event_names},
        )
    try:
        machine.send(event)
    except TransitionNotAllowed:
        raise InvalidStateTransitionError(
            f"Cannot {event} a flow in status {source}",
            details={"flow_id": flow_id, "status": source},
        )

    row = await store.transition_flow(
        flow_id,
        source,
        {"status": machine.status, "updated_at": datetime.now(timezone.utc).isoformat()},
    )
    if row is None:
        raise InvalidStateTransitionError(
            "Flow status changed, reload and try again",
            details={"flow_id": flow_id, "expected_status": source},
        )

    return build_flow_response({**flow, **row, "steps": flow.get("steps") or []})


async def delete_flow(flow_id: str, provider: Dict[str, Any], store=supabase_client) -> None:
    """
    Raises:
        FlowNotFoundError
        FlowHasActiveOnboardingsError: a NOT_STARTED or IN_PROGRESS onboarding
            references the flow
    """
    await _load_flow(flow_id, provider, store)

    active = await store.count_onboardings_for_flow(flow_id, ACTIVE_ONBOARDING_STATUSES)
    if active > 0:
        logger.info("flow_delete_blocked", flow_id=flow_id, active_onboardings=active)
        raise FlowHasActiveOnboardingsError(flow_id)

    await store.delete_flow(flow_id)
    logger.info("flow_definition_deleted", flow_id=flow_id, user_id=provider.get("id"))
