"""
Onboarding Flow State Machine.

Lifecycle of one client_onboardings row. The status is never chosen by a
caller: sync() moves the machine to whatever derive_onboarding_status()
computes from the step progress rows.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union

import structlog
from statemachine import State

from onboarding_os.core.exceptions import InvalidStateTransitionError
from onboarding_os.domain.progress import derive_onboarding_status
from onboarding_os.domain.schemas import OnboardingStatus

from .base import FlowMachine

logger = structlog.get_logger(__name__)


class OnboardingFlowMachine(FlowMachine):
    """
    State machine for a client's run through a flow.

    States map to client_onboardings.status. COMPLETED is final, so the
    completion edge can only be crossed once per onboarding.
    """

    not_started = State(initial=True, value="NOT_STARTED")
    in_progress = State(value="IN_PROGRESS")
    completed = State(value="COMPLETED", final=True)

    begin = not_started.to(in_progress)
    finish = not_started.to(completed) | in_progress.to(completed)

    def on_finish(self, completed_at: Optional[datetime] = None):
        # completed_at is written once
        if not self.record.get("completed_at"):
            self.record["completed_at"] = (completed_at or datetime.now(timezone.utc)).isoformat()
        logger.info(
            "onboarding_marked_completed",
            onboarding_id=self.record.get("id"),
            client_id=self.record.get("client_id"),
        )

    def sync(
        self,
        steps: Iterable[Union[str, Mapping[str, Any]]],
        completed_at: Optional[datetime] = None,
    ) -> bool:
        """
        Bring the machine in line with the derived status of its steps.

        Args:
            steps: Step progress rows or their statuses
            completed_at: Clock for the completion timestamp

        Returns:
            True if the status changed

        Raises:
            InvalidStateTransitionError: the steps imply moving backwards
        """
        target = derive_onboarding_status(steps)
        current = OnboardingStatus(self.status)

        if target == current:
            return False

        if target == OnboardingStatus.COMPLETED:
            self.finish(completed_at=completed_at)
            return True

        if target == OnboardingStatus.IN_PROGRESS and current == OnboardingStatus.NOT_STARTED:
            self.begin()
            return True

        raise InvalidStateTransitionError(
            message=f"Onboarding cannot move from {current.value} to {target.value}",
            details={"onboarding_id": self.record.get("id")},
        )
