"""Tests for flow definition management."""
import pytest

from onboarding_os.core.exceptions import (
    FlowHasActiveOnboardingsError,
    FlowLockedError,
    FlowNotFoundError,
    InvalidStateTransitionError,
    StepConfigError,
    StepValidationError,
)
from onboarding_os.domain.schemas import FlowCreate, FlowStatus, FlowUpdate, OnboardingStatus
from onboarding_os.services.flows import flow_service


async def test_create_flow_is_draft_with_dense_step_order(make_flow):
    flow = await make_flow(publish=False)

    assert flow.status == FlowStatus.DRAFT
    assert [s.order for s in flow.steps] == [0, 1, 2]
    assert [s.type.value for s in flow.steps] == ["WELCOME", "FORM", "CONTRACT"]


async def test_create_flow_strips_markup(store, provider):
    request = FlowCreate.model_validate(
        {
            "name": "<b>Kickoff</b>",
            "steps": [{"type": "CONTRACT", "title": "<script>x</script>Sign", "config": {"bodyText": "<i>Terms</i>"}}],
        }
    )
    flow = await flow_service.create_flow(request, provider, store)

    assert flow.name == "Kickoff"
    assert flow.steps[0].title == "xSign"
    assert flow.steps[0].config == {"bodyText": "Terms", "acceptLabel": "I agree"}


async def test_create_flow_rejects_config_that_does_not_match_type(store, provider):
    request = FlowCreate.model_validate(
        {"name": "Bad", "steps": [{"type": "FILE_UPLOAD", "title": "Docs", "config": {"maxFiles": 0}}]}
    )
    with pytest.raises(StepConfigError):
        await flow_service.create_flow(request, provider, store)
    assert store.flows == {}


async def test_flow_of_another_workspace_is_not_found(store, make_flow):
    flow = await make_flow()
    stranger = store.add_provider(token="other", workspace_name="Other")

    with pytest.raises(FlowNotFoundError):
        await flow_service.get_flow(flow.id, stranger, store)


async def test_lifecycle_publish_archive_restore(store, provider, make_flow):
    flow = await make_flow(publish=False)

    flow = await flow_service.transition_flow(flow.id, "publish", provider, store)
    assert flow.status == FlowStatus.PUBLISHED
    flow = await flow_service.transition_flow(flow.id, "archive", provider, store)
    assert flow.status == FlowStatus.ARCHIVED
    flow = await flow_service.transition_flow(flow.id, "restore", provider, store)
    assert flow.status == FlowStatus.DRAFT
    assert len(flow.steps) == 3


async def test_publish_twice_is_rejected(provider, store, make_flow):
    flow = await make_flow()
    with pytest.raises(InvalidStateTransitionError):
        await flow_service.transition_flow(flow.id, "publish", provider, store)


async def test_publish_requires_steps(provider, store, make_flow):
    flow = await make_flow(steps=[], publish=False)
    with pytest.raises(InvalidStateTransitionError):
        await flow_service.transition_flow(flow.id, "publish", provider, store)


async def test_update_replaces_steps_while_unassigned(store, provider, make_flow):
    flow = await make_flow(publish=False)
    request = FlowUpdate.model_validate(
        {"name": "Renamed", "steps": [{"type": "SCHEDULE", "title": "Book a call", "config": {}}]}
    )

    updated = await flow_service.update_flow(flow.id, request, provider, store)

    assert updated.name == "Renamed"
    assert [(s.type.value, s.order) for s in updated.steps] == [("SCHEDULE", 0)]


async def test_steps_are_locked_once_assigned(store, provider, make_onboarding):
    result = await make_onboarding()
    flow_id = result["onboarding"]["flow_id"]
    flow = await flow_service.get_flow(flow_id, provider, store)

    with pytest.raises(FlowLockedError):
        await flow_service.update_flow(
            flow_id,
            FlowUpdate.model_validate({"steps": [{"type": "WELCOME", "title": "Hi"}]}),
            provider,
            store,
        )
    with pytest.raises(FlowLockedError):
        await flow_service.reorder_steps(flow_id, [s.id for s in reversed(flow.steps)], provider, store)

    # Name changes stay allowed
    renamed = await flow_service.update_flow(flow_id, FlowUpdate(name="Still editable"), provider, store)
    assert renamed.name == "Still editable"
    assert [s.id for s in renamed.steps] == [s.id for s in flow.steps]


async def test_reorder_reassigns_every_order(store, provider, make_flow):
    flow = await make_flow(publish=False)
    new_order = [flow.steps[2].id, flow.steps[0].id, flow.steps[1].id]

    reordered = await flow_service.reorder_steps(flow.id, new_order, provider, store)

    assert [s.id for s in reordered.steps] == new_order
    assert [s.order for s in reordered.steps] == [0, 1, 2]


async def test_reorder_requires_the_exact_step_set(store, provider, make_flow):
    flow = await make_flow(publish=False)
    with pytest.raises(StepValidationError):
        await flow_service.reorder_steps(flow.id, [flow.steps[0].id], provider, store)
    with pytest.raises(StepValidationError):
        ids = [s.id for s in flow.steps]
        await flow_service.reorder_steps(flow.id, ids[:2] + [ids[0]], provider, store)


async def test_delete_blocked_by_active_onboarding(store, provider, make_onboarding):
    result = await make_onboarding()
    flow_id = result["onboarding"]["flow_id"]

    with pytest.raises(FlowHasActiveOnboardingsError) as exc_info:
        await flow_service.delete_flow(flow_id, provider, store)
    assert "active onboardings" in exc_info.value.message
    assert flow_id in store.flows


async def test_delete_allowed_once_onboardings_are_completed(store, provider, make_onboarding):
    result = await make_onboarding()
    onboarding_id = result["onboarding"]["id"]
    store.onboardings[onboarding_id]["status"] = OnboardingStatus.COMPLETED.value

    await flow_service.delete_flow(result["onboarding"]["flow_id"], provider, store)

    assert store.flows == {}
