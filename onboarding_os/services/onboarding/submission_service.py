"""
Client-portal step operations: start a step and submit a step.

The portal token is the only credential. Every write to a step progress row
is a compare-and-swap on its status, so two submissions racing on the same
step cannot both win and accepted data is never overwritten.
"""

from datetime import datetime, timezone
from typing import Any, Dict, NamedTuple, Optional

import structlog
from statemachine.exceptions import TransitionNotAllowed

from onboarding_os.core.exceptions import InvalidPortalTokenError, InvalidStepError, SupabaseError
from onboarding_os.domain.schemas import OnboardingStatus, StepProgressStatus
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.onboarding.completion import reconcile_onboarding_status
from onboarding_os.services.onboarding.events import event_publisher
from onboarding_os.services.steps import validate_submission
from onboarding_os.state_machines import StepProgressMachine

logger = structlog.get_logger(__name__)

MAX_SUBMIT_ATTEMPTS = 3


class SubmitResult(NamedTuple):
    step_progress: Dict[str, Any]
    # Every step of the onboarding is COMPLETED after this call
    all_completed: bool
    # This call persisted the onboarding's COMPLETED flip
    completed_onboarding: bool
    # The step was already COMPLETED; nothing was written
    no_op: bool = False


async def resolve_token(token: str, store=supabase_client) -> Dict[str, Any]:
    """Onboarding for a portal token. Raises InvalidPortalTokenError."""
    if not token:
        raise InvalidPortalTokenError()
    onboarding = await store.get_onboarding_by_token(token)
    if not onboarding:
        logger.warning("invalid_portal_token")
        raise InvalidPortalTokenError()
    return onboarding


async def load_step(onboarding: Dict[str, Any], step_progress_id: str, store=supabase_client) -> Dict[str, Any]:
    """Step progress row that must belong to the onboarding. Raises InvalidStepError."""
    step_progress = await store.get_step_progress(step_progress_id, onboarding["id"])
    if not step_progress or not step_progress.get("step"):
        logger.warning(
            "step_not_in_onboarding",
            onboarding_id=onboarding["id"],
            step_progress_id=step_progress_id,
        )
        raise InvalidStepError(step_progress_id)
    return step_progress


async def _already_completed(onboarding, step_progress, *, store, publisher, now) -> SubmitResult:
    logger.info(
        "step_resubmission_ignored",
        onboarding_id=onboarding["id"],
        step_progress_id=step_progress["id"],
    )
    # An earlier request may have saved the step and failed before reconciling
    steps = await store.list_step_progress(onboarding["id"])
    outcome = await reconcile_onboarding_status(onboarding, steps, store=store, publisher=publisher, now=now)
    return SubmitResult(step_progress, outcome.all_completed, outcome.became_completed, no_op=True)


async def _reconcile_if_not_started(onboarding, *, store, publisher, now) -> None:
    if onboarding.get("status") == OnboardingStatus.NOT_STARTED.value:
        steps = await store.list_step_progress(onboarding["id"])
        await reconcile_onboarding_status(onboarding, steps, store=store, publisher=publisher, now=now)


async def start_step(
    token: str,
    step_progress_id: str,
    *,
    store=supabase_client,
    publisher=event_publisher,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Move a step from NOT_STARTED to IN_PROGRESS.

    Idempotent: a step that is already IN_PROGRESS or COMPLETED is returned
    unchanged. Bumps last activity and moves the onboarding to IN_PROGRESS.
    """
    now = now or datetime.now(timezone.utc)
    onboarding = await resolve_token(token, store)
    step_progress = await load_step(onboarding, step_progress_id, store)

    machine = StepProgressMachine(record=dict(step_progress))
    if machine.status != StepProgressStatus.NOT_STARTED.value:
        await _reconcile_if_not_started(onboarding, store=store, publisher=publisher, now=now)
        return step_progress

    machine.begin()
    updated = await store.transition_step_progress(
        step_progress_id,
        StepProgressStatus.NOT_STARTED.value,
        {"status": machine.status},
    )
    if updated is None:
        # Someone else started or completed it first
        return await load_step(onboarding, step_progress_id, store)

    await _reconcile_if_not_started(onboarding, store=store, publisher=publisher, now=now)
    await store.touch_onboarding_activity(onboarding["id"], now.isoformat())

    logger.info("step_started", onboarding_id=onboarding["id"], step_progress_id=step_progress_id)
    return {**step_progress, **updated}


async def submit_step(
    token: str,
    step_progress_id: str,
    data: Any,
    *,
    store=supabase_client,
    publisher=event_publisher,
    now: Optional[datetime] = None,
) -> SubmitResult:
    """
    Validate and complete one step, then recompute the onboarding.

    Raises:
        InvalidPortalTokenError: token does not resolve to an onboarding
        InvalidStepError: step progress id is not part of that onboarding
        StepValidationError: data rejected by the step type's validator;
            nothing is written
        SupabaseError: persistence failed; status, data and completed_at
            are written as one update so no partial state remains
    """
    now = now or datetime.now(timezone.utc)
    onboarding = await resolve_token(token, store)
    step_progress = await load_step(onboarding, step_progress_id, store)

    for attempt in range(1, MAX_SUBMIT_ATTEMPTS + 1):
        if step_progress["status"] == StepProgressStatus.COMPLETED.value:
            return await _already_completed(
                onboarding, step_progress, store=store, publisher=publisher, now=now
            )

        step = step_progress["step"]
        validated = validate_submission(step["type"], step.get("config"), data, now=now)

        machine = StepProgressMachine(record=dict(step_progress))
        expected_status = machine.status
        try:
            machine.submit(validated, completed_at=now)
        except TransitionNotAllowed:
            step_progress = await load_step(onboarding, step_progress_id, store)
            continue

        updated = await store.transition_step_progress(
            step_progress_id,
            expected_status,
            {
                "status": machine.record["status"],
                "data": machine.record["data"],
                "completed_at": machine.record["completed_at"],
            },
        )
        if updated is not None:
            break

        logger.info(
            "step_submission_conflict",
            step_progress_id=step_progress_id,
            expected_status=expected_status,
            attempt=attempt,
        )
        step_progress = await load_step(onboarding, step_progress_id, store)
    else:
        if step_progress["status"] == StepProgressStatus.COMPLETED.value:
            return await _already_completed(
                onboarding, step_progress, store=store, publisher=publisher, now=now
            )
        logger.error("step_submission_conflicts_exhausted", step_progress_id=step_progress_id)
        raise SupabaseError("Failed to save step, please try again")

    logger.info(
        "step_completed",
        onboarding_id=onboarding["id"],
        step_progress_id=step_progress_id,
        step_type=step_progress["step"]["type"],
    )

    steps = await store.list_step_progress(onboarding["id"])
    outcome = await reconcile_onboarding_status(onboarding, steps, store=store, publisher=publisher, now=now)

    await store.touch_onboarding_activity(onboarding["id"], now.isoformat())

    return SubmitResult(
        step_progress={**step_progress, **updated},
        all_completed=outcome.all_completed,
        completed_onboarding=outcome.became_completed,
    )
