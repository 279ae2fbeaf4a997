"""Tests for the automated reminder sweep."""
from datetime import datetime, timedelta, timezone

from onboarding_os.services.jobs import is_reminder_due, send_reminders

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _onboarding(status="IN_PROGRESS", idle=timedelta(days=4)):
    last = (NOW - idle).isoformat() if idle is not None else None
    return {"id": "ob-1", "status": status, "last_activity_at": last}


class TestIsReminderDue:
    def test_idle_in_progress_onboarding(self):
        assert is_reminder_due(_onboarding(), reminded_recently=False, now=NOW)

    def test_recent_activity(self):
        assert not is_reminder_due(_onboarding(idle=timedelta(days=2)), reminded_recently=False, now=NOW)

    def test_already_reminded(self):
        assert not is_reminder_due(_onboarding(), reminded_recently=True, now=NOW)

    def test_only_in_progress_onboardings(self):
        for status in ("NOT_STARTED", "COMPLETED"):
            assert not is_reminder_due(_onboarding(status=status), reminded_recently=False, now=NOW)

    def test_never_active(self):
        assert not is_reminder_due(_onboarding(idle=None), reminded_recently=False, now=NOW)

    def test_custom_threshold(self):
        onboarding = _onboarding(idle=timedelta(days=2))
        assert is_reminder_due(onboarding, reminded_recently=False, now=NOW, inactivity_days=1)


async def _seed(store, make_onboarding, status, idle):
    result = await make_onboarding()
    row = store.onboardings[result["onboarding"]["id"]]
    row["status"] = status
    row["last_activity_at"] = (NOW - idle).isoformat()
    return row


async def test_sweep_with_nothing_to_send(store):
    response = await send_reminders(store, now=NOW)
    assert response.sent_count == 0
    assert response.message == "No reminders to send"


async def test_sweep_reminds_idle_clients_once_per_window(store, make_onboarding):
    idle = await _seed(store, make_onboarding, "IN_PROGRESS", timedelta(days=4))
    reminded = await _seed(store, make_onboarding, "IN_PROGRESS", timedelta(days=5))
    await _seed(store, make_onboarding, "NOT_STARTED", timedelta(days=10))
    await _seed(store, make_onboarding, "IN_PROGRESS", timedelta(days=1))
    store.notifications.append(
        {
            "client_onboarding_id": reminded["id"],
            "notification_type": "reminder",
            "recipient_email": "jordan@client.test",
            "metadata": {"automated": True},
            "sent_at": (NOW - timedelta(hours=1)).isoformat(),
        }
    )

    response = await send_reminders(store, now=NOW)

    assert response.sent_count == 1
    assert response.message == "Sent 1 reminders"
    by_id = {r.onboarding_id: r for r in response.results}
    assert set(by_id) == {idle["id"], reminded["id"]}
    assert by_id[idle["id"]].sent
    assert by_id[reminded["id"]].reason == "Reminder already sent recently"

    sent = [n for n in store.notifications if n["client_onboarding_id"] == idle["id"]]
    assert [n["metadata"] for n in sent] == [{"progress": 0, "automated": True}]


async def test_sweep_skips_deleted_clients(store, make_onboarding):
    idle = await _seed(store, make_onboarding, "IN_PROGRESS", timedelta(days=4))
    store.clients.pop(idle["client_id"])

    response = await send_reminders(store, now=NOW)

    assert response.sent_count == 0
    assert response.results[0].reason == "Client not found"
