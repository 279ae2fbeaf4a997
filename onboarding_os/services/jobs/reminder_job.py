"""Background job to remind clients about onboardings they stopped working on."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import structlog

from onboarding_os.core.config import settings
from onboarding_os.domain.progress import calculate_progress, parse_timestamp
from onboarding_os.domain.schemas import (
    NotificationType,
    OnboardingStatus,
    ReminderResult,
    ReminderSweepResponse,
)
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.notifications import send_reminder
from onboarding_os.services.onboarding.context import load_context

logger = structlog.get_logger()


def is_reminder_due(
    onboarding: Dict[str, Any],
    *,
    reminded_recently: bool,
    now: datetime,
    inactivity_days: Optional[int] = None,
) -> bool:
    """
    An onboarding gets an automated reminder when it is IN_PROGRESS, its last
    activity is older than the inactivity threshold and no reminder went out
    within the dedup window (reminded_recently).
    """
    if inactivity_days is None:
        inactivity_days = settings.reminder_inactivity_days

    if onboarding.get("status") != OnboardingStatus.IN_PROGRESS.value:
        return False
    if reminded_recently:
        return False

    last_activity = parse_timestamp(onboarding.get("last_activity_at"))
    if last_activity is None:
        return False
    return last_activity < now - timedelta(days=inactivity_days)


async def send_reminders(store=supabase_client, now: Optional[datetime] = None) -> ReminderSweepResponse:
    """
    Send reminder emails to clients with inactive onboardings.
    Runs daily via the scheduler: at most one automated reminder per
    onboarding per rolling window.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=settings.reminder_inactivity_days)
    window_start = now - timedelta(hours=settings.reminder_window_hours)

    candidates = await store.find_inactive_onboardings(OnboardingStatus.IN_PROGRESS.value, cutoff.isoformat())
    if not candidates:
        logger.info("reminder_sweep_nothing_to_send")
        return ReminderSweepResponse(message="No reminders to send", sent_count=0)

    results: List[ReminderResult] = []
    for onboarding in candidates:
        onboarding_id = onboarding["id"]

        reminded_recently = await store.has_recent_notification(
            onboarding_id, NotificationType.REMINDER.value, window_start.isoformat()
        )
        if not is_reminder_due(onboarding, reminded_recently=reminded_recently, now=now):
            results.append(
                ReminderResult(
                    onboarding_id=onboarding_id,
                    skipped=True,
                    reason="Reminder already sent recently" if reminded_recently else "Not eligible",
                )
            )
            continue

        ctx = await load_context(onboarding, store)
        if not ctx.client or not ctx.client.get("email"):
            results.append(ReminderResult(onboarding_id=onboarding_id, skipped=True, reason="Client not found"))
            continue

        email = ctx.client["email"]
        try:
            steps = await store.list_step_progress(onboarding_id)
            await send_reminder(
                onboarding,
                ctx.client,
                ctx.workspace,
                calculate_progress(steps),
                automated=True,
                store=store,
            )
            results.append(ReminderResult(onboarding_id=onboarding_id, email=email, sent=True))
        except Exception as e:
            logger.error("reminder_send_failed", onboarding_id=onboarding_id, error=str(e), exc_info=True)
            results.append(ReminderResult(onboarding_id=onboarding_id, email=email, error=str(e)))

    sent_count = sum(1 for r in results if r.sent)
    logger.info(
        "reminder_sweep_finished",
        candidates=len(candidates),
        sent_count=sent_count,
        skipped=sum(1 for r in results if r.skipped),
        failed=sum(1 for r in results if r.error),
    )
    return ReminderSweepResponse(
        message=f"Sent {sent_count} reminders",
        sent_count=sent_count,
        results=results,
    )
