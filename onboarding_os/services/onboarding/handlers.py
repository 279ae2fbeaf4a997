"""
OnboardingCompleted handlers.

Run by the worker callback after the RQ job delivers the event. Handlers are
independent: one failing is logged and reported but never stops the others.
"""

from typing import Awaitable, Callable, List, Tuple

import structlog

from onboarding_os.core.exceptions import OnboardingNotFoundError
from onboarding_os.domain.schemas import CompletionHandlerResult, OnboardingCompletedEvent
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.notifications import log_activity, send_completion_notice
from onboarding_os.services.onboarding.context import OnboardingContext, load_context

logger = structlog.get_logger(__name__)

Handler = Callable[[OnboardingCompletedEvent, OnboardingContext, object], Awaitable[None]]


async def notify_provider(event: OnboardingCompletedEvent, ctx: OnboardingContext, store) -> None:
    if not ctx.client:
        raise ValueError(f"Client {event.client_id} not found")
    owner_id = (ctx.workspace or {}).get("owner_id")
    owner = await store.get_profile(owner_id) if owner_id else None
    if not owner or not owner.get("email"):
        logger.warning("completion_notice_no_owner_email", onboarding_id=event.onboarding_id)
        return
    await send_completion_notice(ctx.onboarding, ctx.client, ctx.flow, owner["email"], store=store)


async def record_activity(event: OnboardingCompletedEvent, ctx: OnboardingContext, store) -> None:
    await log_activity(
        workspace_id=(ctx.client or {}).get("workspace_id"),
        action="onboarding_completed",
        client_id=event.client_id,
        metadata={
            "onboarding_id": event.onboarding_id,
            "flow_id": event.flow_id,
            "flow_name": (ctx.flow or {}).get("name"),
            "completed_at": event.completed_at.isoformat(),
        },
        store=store,
    )


COMPLETION_HANDLERS: List[Tuple[str, Handler]] = [
    ("notify_provider", notify_provider),
    ("record_activity", record_activity),
]


async def run_completion_handlers(
    event: OnboardingCompletedEvent, store=supabase_client
) -> List[CompletionHandlerResult]:
    """
    Run every completion handler for an event.

    Raises:
        OnboardingNotFoundError: the onboarding no longer exists
    """
    onboarding = await store.get_onboarding(event.onboarding_id)
    if not onboarding:
        raise OnboardingNotFoundError("Onboarding not found", details={"onboarding_id": event.onboarding_id})

    ctx = await load_context(onboarding, store)

    results = []
    for name, handler in COMPLETION_HANDLERS:
        try:
            await handler(event, ctx, store)
            results.append(CompletionHandlerResult(handler=name, ok=True))
        except Exception as e:
            logger.error(
                "completion_handler_failed",
                handler=name,
                onboarding_id=event.onboarding_id,
                error=str(e),
                exc_info=True,
            )
            results.append(CompletionHandlerResult(handler=name, ok=False, error=str(e)))

    logger.info(
        "completion_handlers_finished",
        onboarding_id=event.onboarding_id,
        failed=[r.handler for r in results if not r.ok],
    )
    return results
