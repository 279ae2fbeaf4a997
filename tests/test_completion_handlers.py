"""Tests for the OnboardingCompleted publisher, job and handlers."""
from datetime import datetime, timezone

import httpx
import pytest

from onboarding_os.core.exceptions import OnboardingNotFoundError
from onboarding_os.domain.schemas import OnboardingCompletedEvent
from onboarding_os.services.jobs import CallbackUnavailableError, handle_onboarding_completed_task
from onboarding_os.services.jobs import tasks
from onboarding_os.services.onboarding import RQEventPublisher, run_completion_handlers
from onboarding_os.services.onboarding import handlers

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def _event(onboarding):
    return OnboardingCompletedEvent(
        onboarding_id=onboarding["id"],
        client_id=onboarding["client_id"],
        flow_id=onboarding["flow_id"],
        completed_at=NOW,
    )


async def test_handlers_notify_owner_and_record_activity(store, client_record, make_onboarding):
    onboarding = (await make_onboarding())["onboarding"]

    results = await run_completion_handlers(_event(onboarding), store)

    assert [(r.handler, r.ok) for r in results] == [("notify_provider", True), ("record_activity", True)]
    [notice] = store.notifications
    assert notice["notification_type"] == "onboarding_complete"
    assert notice["recipient_email"] == "owner@acme.test"
    [activity] = store.activities
    assert activity["action"] == "onboarding_completed"
    assert activity["client_id"] == client_record["id"]
    assert activity["metadata"]["completed_at"] == NOW.isoformat()


async def test_failing_handler_does_not_stop_the_others(store, make_onboarding, monkeypatch):
    onboarding = (await make_onboarding())["onboarding"]

    async def broken(event, ctx, store):
        raise RuntimeError("SES down")

    monkeypatch.setattr(
        handlers,
        "COMPLETION_HANDLERS",
        [("notify_provider", broken), ("record_activity", handlers.record_activity)],
    )

    results = await run_completion_handlers(_event(onboarding), store)

    assert results[0].ok is False and results[0].error == "SES down"
    assert results[1].ok is True
    assert len(store.activities) == 1


async def test_missing_onboarding(store):
    event = OnboardingCompletedEvent(onboarding_id="gone", client_id="c", flow_id="f", completed_at=NOW)
    with pytest.raises(OnboardingNotFoundError):
        await run_completion_handlers(event, store)


class FakeQueue:
    def __init__(self):
        self.jobs = []

    def enqueue(self, func, *args, **kwargs):
        self.jobs.append((func, args, kwargs))

        class Job:
            id = kwargs.get("job_id")

        return Job()


def test_publisher_enqueues_one_job_per_onboarding():
    queue = FakeQueue()
    event = OnboardingCompletedEvent(onboarding_id="ob-1", client_id="c-1", flow_id="f-1", completed_at=NOW)

    RQEventPublisher(queue=queue).publish_onboarding_completed(event)

    [(func, args, kwargs)] = queue.jobs
    assert func is handle_onboarding_completed_task
    assert args == (
        {"onboardingId": "ob-1", "clientId": "c-1", "flowId": "f-1", "completedAt": "2026-03-02T12:00:00Z"},
    )
    assert kwargs["job_id"] == "onboarding-completed-ob-1"
    assert kwargs["retry"].max == 3


def _mock_client(monkeypatch, handler):
    real_client = httpx.Client

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(tasks.httpx, "Client", factory)


def test_job_posts_event_with_internal_secret(monkeypatch):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["secret"] = request.headers.get("X-Internal-Secret")
        return httpx.Response(200, json={"success": True, "onboardingId": "ob-1", "results": []})

    _mock_client(monkeypatch, handler)

    result = handle_onboarding_completed_task({"onboardingId": "ob-1"})

    assert result["success"] is True
    assert seen["url"].endswith("/api/v1/worker/events/onboarding-completed")
    assert seen["secret"] == "test-internal-secret"


def test_job_drops_rejected_event(monkeypatch):
    _mock_client(monkeypatch, lambda request: httpx.Response(404, json={"message": "Onboarding not found"}))

    result = handle_onboarding_completed_task({"onboardingId": "ob-1"})

    assert result == {"success": False, "terminal": True, "error": "Onboarding not found"}


def test_job_retries_on_server_error(monkeypatch):
    _mock_client(monkeypatch, lambda request: httpx.Response(500, json={"message": "boom"}))

    with pytest.raises(CallbackUnavailableError):
        handle_onboarding_completed_task({"onboardingId": "ob-1"})
