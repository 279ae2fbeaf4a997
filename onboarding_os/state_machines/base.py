"""
Base state machine class for all flow state machines.

Machines are built from a store record (dict), start in the state named by the
record's status column and write the new status back into the record on every
transition. Persisting the record is the caller's job: the services apply the
change with a conditional update keyed on the pre-transition status.
"""

from typing import Any, Dict, List, Optional

import structlog
from statemachine import StateMachine


class FlowMachine(StateMachine):
    """
    Base class for all flow state machines.

    Features:
    - Start state taken from record["status"] (unknown values fall back to
      the initial state with a warning)
    - record["status"] kept in sync on every transition
    - Structured logging on every transition
    - get_flow_info() for API responses
    """

    status_field = "status"

    def __init__(
        self,
        record: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
        **kwargs,
    ):
        """
        Initialize flow machine.

        Args:
            record: DB record as dict (e.g., client_step_progress row)
            actor_id: Who is driving the transition, for logging
            **kwargs: Additional context passed to StateMachine
        """
        self.record = record if record is not None else {}
        self.actor_id = actor_id
        self.logger = structlog.get_logger(__name__)

        start_value = self._start_value_from_record()
        if start_value is not None:
            kwargs.setdefault("start_value", start_value)
        super().__init__(**kwargs)

    def _start_value_from_record(self) -> Optional[str]:
        status = self.record.get(self.status_field)
        if status is None:
            return None

        status = getattr(status, "value", status)
        known = {state.value for state in self.states}
        if status not in known:
            self.logger.warning(
                "unknown_status_in_record",
                machine=type(self).__name__,
                status=status,
                record_id=self.record.get("id"),
                defaulting_to=self._initial_value(),
            )
            return None
        return status

    def _initial_value(self) -> Optional[str]:
        for state in self.states:
            if state.initial:
                return state.value
        return None

    @property
    def active_state(self):
        return self.states_map[self.current_state_value]

    @property
    def status(self) -> str:
        return self.active_state.value

    @property
    def allowed_event_names(self) -> List[str]:
        return [event.id for event in self.allowed_events]

    def get_flow_info(self) -> Dict[str, Any]:
        """
        Returns current state + allowed events for API responses.
        """
        return {
            "state": self.active_state.value,
            "allowed_events": self.allowed_event_names,
            "is_final": self.active_state.final,
        }

    def after_transition(self, event, source, target):
        # Activation of the starting state is not a transition
        if source is None:
            return
        if source.value != target.value:
            self.record[self.status_field] = target.value
        self.log_transition(str(event), source.value, target.value)

    def log_transition(self, event: str, from_state: str, to_state: str):
        """
        Log state transition with structured logging.

        Args:
            event: Event name that triggered transition
            from_state: Previous state
            to_state: New state
        """
        self.logger.info(
            "state_transition",
            machine=type(self).__name__,
            transition_event=event,
            from_state=from_state,
            to_state=to_state,
            actor_id=self.actor_id,
            record_id=self.record.get("id"),
        )
