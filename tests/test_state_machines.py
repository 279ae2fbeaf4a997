"""Tests for the flow definition, onboarding and step progress state machines."""
import warnings
from datetime import datetime, timezone

import pytest
from statemachine.exceptions import TransitionNotAllowed

from onboarding_os.core.exceptions import InvalidStateTransitionError
from onboarding_os.state_machines import (
    FlowDefinitionMachine,
    OnboardingFlowMachine,
    StepProgressMachine,
    get_flow_machine,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestStepProgressMachine:
    def test_starts_from_record_status(self):
        machine = StepProgressMachine(record={"id": "sp-1", "status": "IN_PROGRESS"})
        assert machine.status == "IN_PROGRESS"

    def test_submit_from_not_started_passes_through_in_progress(self):
        record = {"id": "sp-1", "status": "NOT_STARTED", "data": {}}
        machine = StepProgressMachine(record=record)

        machine.submit({"company": "Acme"}, completed_at=NOW)

        assert machine.is_completed
        assert record["status"] == "COMPLETED"
        assert record["data"] == {"company": "Acme"}
        assert record["completed_at"] == NOW.isoformat()

    def test_completed_step_cannot_move(self):
        machine = StepProgressMachine(record={"id": "sp-1", "status": "COMPLETED"})
        assert machine.allowed_event_names == []
        with pytest.raises(TransitionNotAllowed):
            machine.submit({}, completed_at=NOW)

    def test_reading_state_raises_no_deprecation_warning(self):
        machine = StepProgressMachine(record={"id": "sp-1", "status": "COMPLETED"})

        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            assert machine.status == "COMPLETED"
            assert machine.is_completed

    def test_cannot_skip_in_progress(self):
        machine = StepProgressMachine(record={"status": "NOT_STARTED"})
        with pytest.raises(TransitionNotAllowed):
            machine.complete(data={}, completed_at=NOW)

    def test_unknown_status_falls_back_to_initial_state(self):
        machine = StepProgressMachine(record={"status": "SKIPPED"})
        assert machine.status == "NOT_STARTED"


class TestOnboardingFlowMachine:
    def test_sync_moves_to_in_progress(self):
        record = {"id": "ob-1", "status": "NOT_STARTED"}
        machine = OnboardingFlowMachine(record=record)

        assert machine.sync(["COMPLETED", "NOT_STARTED"]) is True
        assert record["status"] == "IN_PROGRESS"

    def test_sync_completes_and_stamps_once(self):
        record = {"id": "ob-1", "status": "IN_PROGRESS"}
        machine = OnboardingFlowMachine(record=record)

        assert machine.sync(["COMPLETED", "COMPLETED"], completed_at=NOW) is True
        assert record["status"] == "COMPLETED"
        assert record["completed_at"] == NOW.isoformat()

    def test_sync_completes_straight_from_not_started(self):
        machine = OnboardingFlowMachine(record={"status": "NOT_STARTED"})
        assert machine.sync(["COMPLETED"], completed_at=NOW) is True
        assert machine.status == "COMPLETED"

    def test_sync_without_change(self):
        machine = OnboardingFlowMachine(record={"status": "IN_PROGRESS"})
        assert machine.sync(["COMPLETED", "IN_PROGRESS"]) is False

    def test_sync_never_moves_backwards(self):
        machine = OnboardingFlowMachine(record={"id": "ob-1", "status": "COMPLETED"})
        with pytest.raises(InvalidStateTransitionError):
            machine.sync(["COMPLETED", "NOT_STARTED"])


class TestFlowDefinitionMachine:
    def test_lifecycle(self):
        record = {"id": "flow-1", "status": "draft"}
        machine = FlowDefinitionMachine(record=record)
        assert not machine.is_assignable

        machine.publish()
        assert machine.is_assignable
        machine.archive()
        assert record["status"] == "archived"
        machine.restore()
        assert record["status"] == "draft"

    def test_archived_flow_cannot_be_published(self):
        machine = FlowDefinitionMachine(record={"status": "archived"})
        assert machine.allowed_event_names == ["restore"]
        with pytest.raises(TransitionNotAllowed):
            machine.publish()

    def test_flow_info(self):
        info = FlowDefinitionMachine(record={"status": "published"}).get_flow_info()
        assert info == {"state": "published", "allowed_events": ["archive"], "is_final": False}


def test_registry_builds_machines_by_type():
    machine = get_flow_machine("step_progress", record={"status": "IN_PROGRESS"})
    assert isinstance(machine, StepProgressMachine)
    with pytest.raises(ValueError):
        get_flow_machine("invoice")
