"""Pytest configuration for tests directory."""
import os

# Settings are read at import time, so the environment is prepared first
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-key")
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["INTERNAL_API_SECRET"] = "test-internal-secret"
os.environ["AWS_ACCESS_KEY_ID"] = ""
os.environ["AWS_SECRET_ACCESS_KEY"] = ""

from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from onboarding_os.domain.schemas import AssignFlowRequest, FlowCreate  # noqa: E402
from onboarding_os.services.flows import flow_service  # noqa: E402
from onboarding_os.services.onboarding import assign_flow  # noqa: E402

from tests.fakes import InMemoryStore, RecordingPublisher  # noqa: E402

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

WELCOME_FORM_CONTRACT = [
    {"type": "WELCOME", "title": "Welcome", "config": {}},
    {
        "type": "FORM",
        "title": "About you",
        "config": {
            "fields": [
                {"id": "company", "type": "text", "label": "Company", "required": True},
                {"id": "website", "type": "url", "label": "Website"},
            ]
        },
    },
    {"type": "CONTRACT", "title": "Agreement", "config": {"bodyText": "Terms apply."}},
]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def provider(store):
    return store.add_provider()


@pytest.fixture
def client_record(store, provider):
    return store.add_client(provider["current_workspace_id"])


@pytest.fixture
def make_flow(store, provider):
    """Create a flow from step dicts, published unless publish=False."""

    async def _make(steps=None, publish=True, name="Client onboarding"):
        request = FlowCreate.model_validate(
            {"name": name, "steps": WELCOME_FORM_CONTRACT if steps is None else steps}
        )
        flow = await flow_service.create_flow(request, provider, store)
        if publish:
            flow = await flow_service.transition_flow(flow.id, "publish", provider, store)
        return flow

    return _make


@pytest.fixture
def make_onboarding(store, provider, client_record, make_flow):
    """Assign a (new, published) flow to the client; returns the assign result dict."""

    async def _make(steps=None):
        flow = await make_flow(steps)
        request = AssignFlowRequest(client_id=client_record["id"], flow_id=flow.id)
        return await assign_flow(request, provider, store)

    return _make
