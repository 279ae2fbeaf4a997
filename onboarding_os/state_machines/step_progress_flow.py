"""
Step Progress State Machine.

Lifecycle of one client_step_progress row:
NOT_STARTED -> IN_PROGRESS -> COMPLETED. Linear, no skipping, COMPLETED is final.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from statemachine import State

from .base import FlowMachine


class StepProgressMachine(FlowMachine):
    """
    State machine for a single step's progress record.

    States map to client_step_progress.status.
    """

    not_started = State(initial=True, value="NOT_STARTED")
    in_progress = State(value="IN_PROGRESS")
    completed = State(value="COMPLETED", final=True)

    begin = not_started.to(in_progress)
    complete = in_progress.to(completed)

    def on_complete(self, data: Optional[Dict[str, Any]] = None, completed_at: Optional[datetime] = None):
        # status, data and completed_at change together
        self.record["data"] = data if data is not None else {}
        self.record["completed_at"] = (completed_at or datetime.now(timezone.utc)).isoformat()

    @property
    def is_completed(self) -> bool:
        return self.active_state.final

    def submit(self, data: Dict[str, Any], completed_at: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Move the step to COMPLETED with its validated payload.

        A NOT_STARTED step passes through IN_PROGRESS first. Raises
        TransitionNotAllowed if the step is already COMPLETED.

        Returns:
            The updated record
        """
        if self.status == self.not_started.value:
            self.begin()
        self.complete(data=data, completed_at=completed_at)
        return self.record
