"""
Read models for onboardings. Status and progress are always derived from the
step progress rows, never taken from the stored status column.
"""

from typing import Any, Dict, List

from onboarding_os.domain.progress import calculate_progress, derive_onboarding_status, get_due_date_status
from onboarding_os.domain.schemas import (
    OnboardingDetailResponse,
    PortalViewResponse,
    StepProgressResponse,
    StepTemplateResponse,
    WorkspaceBranding,
)
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.onboarding.context import load_context
from onboarding_os.services.onboarding.submission_service import resolve_token


def build_step_template(step: Dict[str, Any]) -> StepTemplateResponse:
    return StepTemplateResponse(
        id=step["id"],
        type=step["type"],
        title=step["title"],
        description=step.get("description"),
        config=step.get("config") or {},
        order=step.get("step_order", 0),
    )


def build_step_progress(row: Dict[str, Any]) -> StepProgressResponse:
    return StepProgressResponse(
        id=row["id"],
        status=row["status"],
        data=row.get("data") if row.get("data") is not None else {},
        completed_at=row.get("completed_at"),
        step=build_step_template(row["step"]),
    )


def build_onboarding_detail(onboarding: Dict[str, Any], steps: List[Dict[str, Any]]) -> OnboardingDetailResponse:
    return OnboardingDetailResponse(
        id=onboarding["id"],
        client_id=onboarding["client_id"],
        flow_id=onboarding["flow_id"],
        status=derive_onboarding_status(steps),
        progress=calculate_progress(steps),
        priority=onboarding.get("priority") or "normal",
        due_date=onboarding.get("due_date"),
        due_date_status=get_due_date_status(onboarding.get("due_date")),
        last_activity_at=onboarding.get("last_activity_at"),
        completed_at=onboarding.get("completed_at"),
        created_at=onboarding.get("created_at"),
        steps=[build_step_progress(row) for row in steps if row.get("step")],
    )


async def get_portal_view(token: str, store=supabase_client) -> PortalViewResponse:
    """
    Everything the client portal renders for a token.

    Raises:
        InvalidPortalTokenError
    """
    onboarding = await resolve_token(token, store)
    ctx = await load_context(onboarding, store)
    steps = await store.list_step_progress(onboarding["id"])

    branding = None
    if ctx.workspace:
        branding = WorkspaceBranding(
            name=ctx.workspace.get("name") or "",
            logo_url=ctx.workspace.get("logo_url"),
            brand_color=ctx.workspace.get("brand_color"),
        )

    return PortalViewResponse(
        onboarding_id=onboarding["id"],
        status=derive_onboarding_status(steps),
        progress=calculate_progress(steps),
        client_name=(ctx.client or {}).get("name"),
        flow_name=(ctx.flow or {}).get("name"),
        flow_description=(ctx.flow or {}).get("description"),
        workspace=branding,
        steps=[build_step_progress(row) for row in steps if row.get("step")],
    )
