"""
Completion orchestrator.

After any step progress write, the onboarding's stored status is brought in
line with the status derived from its steps. Crossing into COMPLETED is a
conditional update from an active status, so when several requests race on
the last step exactly one of them wins the flip and publishes
OnboardingCompleted. Everyone else sees a no-op.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional

import structlog

from onboarding_os.core.exceptions import InvalidStateTransitionError
from onboarding_os.domain.progress import derive_onboarding_status
from onboarding_os.domain.schemas import (
    ACTIVE_ONBOARDING_STATUSES,
    OnboardingCompletedEvent,
    OnboardingStatus,
)
from onboarding_os.state_machines import OnboardingFlowMachine

logger = structlog.get_logger(__name__)


class CompletionOutcome(NamedTuple):
    status: OnboardingStatus
    all_completed: bool
    # True only for the call that persisted the COMPLETED flip
    became_completed: bool


async def reconcile_onboarding_status(
    onboarding: Dict[str, Any],
    steps: List[Dict[str, Any]],
    *,
    store,
    publisher,
    now: Optional[datetime] = None,
) -> CompletionOutcome:
    """
    Persist the derived status of an onboarding and fire the completion
    cascade on the NOT-all-complete to all-complete edge.

    Args:
        onboarding: client_onboardings row as last read
        steps: all of its client_step_progress rows, freshly read
        store: SupabaseClient-compatible store
        publisher: event publisher with publish_onboarding_completed()
        now: Clock for completed_at

    Returns:
        CompletionOutcome
    """
    now = now or datetime.now(timezone.utc)
    derived = derive_onboarding_status(steps)
    all_completed = derived == OnboardingStatus.COMPLETED

    machine = OnboardingFlowMachine(record=dict(onboarding))
    try:
        changed = machine.sync(steps, completed_at=now)
    except InvalidStateTransitionError:
        # Stored status is ahead of the steps (e.g. a flip already persisted); leave it
        logger.warning(
            "onboarding_status_ahead_of_steps",
            onboarding_id=onboarding["id"],
            stored_status=onboarding.get("status"),
            derived_status=derived.value,
        )
        return CompletionOutcome(OnboardingStatus(machine.status), all_completed, False)

    if not changed:
        return CompletionOutcome(derived, all_completed, False)

    updates: Dict[str, Any] = {"status": machine.status}
    if all_completed:
        updates["completed_at"] = machine.record["completed_at"]
        expected = ACTIVE_ONBOARDING_STATUSES
    else:
        expected = [OnboardingStatus.NOT_STARTED.value]

    row = await store.transition_onboarding(onboarding["id"], expected, updates)
    if row is None:
        # Another request already moved the onboarding
        logger.info(
            "onboarding_transition_lost_race",
            onboarding_id=onboarding["id"],
            target_status=machine.status,
        )
        return CompletionOutcome(derived, all_completed, False)

    if not all_completed:
        return CompletionOutcome(derived, False, False)

    logger.info(
        "onboarding_completed",
        onboarding_id=onboarding["id"],
        client_id=onboarding.get("client_id"),
        flow_id=onboarding.get("flow_id"),
    )

    event = OnboardingCompletedEvent(
        onboarding_id=onboarding["id"],
        client_id=onboarding["client_id"],
        flow_id=onboarding["flow_id"],
        completed_at=row.get("completed_at") or updates["completed_at"],
    )
    try:
        publisher.publish_onboarding_completed(event)
    except Exception as e:
        # The flip is committed; a lost event must not fail the client's request
        logger.error(
            "completion_event_publish_failed",
            onboarding_id=onboarding["id"],
            error=str(e),
            exc_info=True,
        )

    return CompletionOutcome(derived, True, True)
