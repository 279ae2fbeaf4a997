"""Tests for assigning flows, reading onboardings, manual reminders and client deletion."""
import pytest

from onboarding_os.core.config import settings
from onboarding_os.core.exceptions import (
    ClientNotFoundError,
    FlowNotPublishedError,
    OnboardingNotFoundError,
    ReminderNotAllowedError,
    SupabaseError,
)
from onboarding_os.domain.schemas import AssignFlowRequest, OnboardingStatus
from onboarding_os.services.flows import flow_service
from onboarding_os.services.onboarding import (
    assign_flow,
    delete_client,
    get_onboarding_detail,
    send_manual_reminder,
)


async def test_draft_flow_cannot_be_assigned(store, provider, client_record, make_flow):
    flow = await make_flow(publish=False)

    with pytest.raises(FlowNotPublishedError):
        await assign_flow(AssignFlowRequest(client_id=client_record["id"], flow_id=flow.id), provider, store)
    assert store.onboardings == {}


async def test_archived_flow_cannot_be_assigned(store, provider, client_record, make_flow):
    flow = await make_flow()
    await flow_service.transition_flow(flow.id, "archive", provider, store)

    with pytest.raises(FlowNotPublishedError):
        await assign_flow(AssignFlowRequest(client_id=client_record["id"], flow_id=flow.id), provider, store)


async def test_assignment_creates_one_row_per_step_in_order(store, provider, make_onboarding):
    result = await make_onboarding()
    onboarding = result["onboarding"]

    assert onboarding["status"] == OnboardingStatus.NOT_STARTED.value
    assert onboarding["last_activity_at"] is None

    rows = await store.list_step_progress(onboarding["id"])
    assert [r["status"] for r in rows] == ["NOT_STARTED"] * 3
    assert [r["step"]["type"] for r in rows] == ["WELCOME", "FORM", "CONTRACT"]


async def test_portal_token_is_unguessable_and_unique(store, provider, client_record, make_flow):
    flow = await make_flow()
    request = AssignFlowRequest(client_id=client_record["id"], flow_id=flow.id)

    first = (await assign_flow(request, provider, store))["response"]
    second = (await assign_flow(request, provider, store))["response"]

    assert first.portal_token != second.portal_token
    # token_urlsafe encodes 4 characters per 3 bytes
    assert len(first.portal_token) >= settings.portal_token_bytes * 4 // 3
    assert first.portal_url.endswith(f"/c/{first.portal_token}")


async def test_client_from_another_workspace_is_not_found(store, provider, make_flow):
    flow = await make_flow()
    stranger = store.add_provider(token="other", workspace_name="Other")
    foreign_client = store.add_client(stranger["current_workspace_id"])

    with pytest.raises(ClientNotFoundError):
        await assign_flow(AssignFlowRequest(client_id=foreign_client["id"], flow_id=flow.id), provider, store)


async def test_failed_step_progress_insert_leaves_no_onboarding(store, provider, client_record, make_flow):
    flow = await make_flow()
    store.fail_step_progress_insert = True

    with pytest.raises(SupabaseError):
        await assign_flow(AssignFlowRequest(client_id=client_record["id"], flow_id=flow.id), provider, store)
    assert store.onboardings == {}


async def test_onboarding_detail(store, provider, make_onboarding):
    result = await make_onboarding()
    detail = await get_onboarding_detail(result["onboarding"]["id"], provider, store)

    assert detail.progress == 0
    assert detail.due_date_status.status == "none"
    assert [s.step.order for s in detail.steps] == [0, 1, 2]

    stranger = store.add_provider(token="other", workspace_name="Other")
    with pytest.raises(OnboardingNotFoundError):
        await get_onboarding_detail(result["onboarding"]["id"], stranger, store)


async def test_manual_reminder_without_onboarding(store, provider, client_record):
    with pytest.raises(ReminderNotAllowedError) as exc_info:
        await send_manual_reminder(client_record["id"], provider, store)
    assert exc_info.value.message == "No onboarding found for this client"


async def test_manual_reminder_after_completion(store, provider, client_record, make_onboarding):
    result = await make_onboarding()
    store.onboardings[result["onboarding"]["id"]]["status"] = OnboardingStatus.COMPLETED.value

    with pytest.raises(ReminderNotAllowedError) as exc_info:
        await send_manual_reminder(client_record["id"], provider, store)
    assert exc_info.value.message == "Onboarding already completed"


async def test_manual_reminder_is_logged(store, provider, client_record, make_onboarding):
    result = await make_onboarding()

    response = await send_manual_reminder(client_record["id"], provider, store)

    assert response["onboarding_id"] == result["onboarding"]["id"]
    assert response["mock"] is True
    [notification] = store.notifications
    assert notification["notification_type"] == "reminder"
    assert notification["recipient_email"] == client_record["email"]
    assert notification["metadata"] == {"progress": 0, "manual": True}


async def test_delete_client_cascades(store, provider, client_record, make_onboarding):
    result = await make_onboarding()
    onboarding_id = result["onboarding"]["id"]

    await delete_client(client_record["id"], provider, store)

    assert store.clients == {}
    assert onboarding_id not in store.onboardings
    assert store.step_progress == {}
