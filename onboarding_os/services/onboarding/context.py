"""Related records of an onboarding, for notifications and read models."""

from typing import Any, Dict, NamedTuple, Optional

from onboarding_os.infrastructure.supabase_client import supabase_client


class OnboardingContext(NamedTuple):
    onboarding: Dict[str, Any]
    client: Optional[Dict[str, Any]]
    workspace: Optional[Dict[str, Any]]
    flow: Optional[Dict[str, Any]]


async def load_context(onboarding: Dict[str, Any], store=supabase_client) -> OnboardingContext:
    client = await store.get_client(onboarding["client_id"])
    workspace = None
    if client and client.get("workspace_id"):
        workspace = await store.get_workspace(client["workspace_id"])
    flow = await store.get_flow(onboarding["flow_id"])
    return OnboardingContext(onboarding, client, workspace, flow)
