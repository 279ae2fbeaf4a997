"""
Client and provider notifications.

Each send goes through the SES email service and is recorded in
notification_logs; the log is what the reminder sweep uses for its
24-hour dedup window.
"""

from typing import Any, Dict, Optional

import structlog

from onboarding_os.core.config import settings
from onboarding_os.core.security import security
from onboarding_os.domain.schemas import NotificationType
from onboarding_os.infrastructure import email_service
from onboarding_os.infrastructure.supabase_client import supabase_client

logger = structlog.get_logger(__name__)

DEFAULT_PROVIDER_NAME = "your provider"


def provider_name(workspace: Optional[Dict[str, Any]]) -> str:
    return (workspace or {}).get("name") or DEFAULT_PROVIDER_NAME


def dashboard_url(client_id: str) -> str:
    return f"{settings.app_url.rstrip('/')}/dashboard/clients/{client_id}"


async def send_welcome(
    onboarding: Dict[str, Any],
    client: Dict[str, Any],
    workspace: Optional[Dict[str, Any]],
    store=supabase_client,
) -> None:
    """Welcome email with the portal link. Failures are logged, never raised."""
    portal_url = security.build_portal_url(onboarding["onboarding_link_token"])
    message = email_service.welcome_email(
        client_name=client.get("name") or "there",
        provider_name=provider_name(workspace),
        portal_url=portal_url,
    )
    try:
        await email_service.send_email(client["email"], message)
        await store.log_notification(
            onboarding["id"],
            NotificationType.WELCOME.value,
            client["email"],
            {"flow_id": onboarding.get("flow_id")},
        )
    except Exception as e:
        logger.error(
            "welcome_email_failed",
            onboarding_id=onboarding["id"],
            client_id=client.get("id"),
            error=str(e),
            exc_info=True,
        )


async def send_reminder(
    onboarding: Dict[str, Any],
    client: Dict[str, Any],
    workspace: Optional[Dict[str, Any]],
    progress: int,
    *,
    automated: bool,
    store=supabase_client,
) -> Dict[str, Any]:
    """
    Reminder email with the client's progress, logged as a `reminder`
    notification.

    Raises:
        DependencyFailureError: email could not be sent
        SupabaseError: notification log could not be written
    """
    portal_url = security.build_portal_url(onboarding["onboarding_link_token"])
    message = email_service.reminder_email(
        client_name=client.get("name") or "there",
        provider_name=provider_name(workspace),
        portal_url=portal_url,
        progress=progress,
    )
    result = await email_service.send_email(client["email"], message)

    metadata: Dict[str, Any] = {"progress": progress}
    metadata["automated" if automated else "manual"] = True
    await store.log_notification(
        onboarding["id"],
        NotificationType.REMINDER.value,
        client["email"],
        metadata,
    )
    logger.info(
        "reminder_sent",
        onboarding_id=onboarding["id"],
        client_id=client.get("id"),
        progress=progress,
        automated=automated,
    )
    return result


async def send_completion_notice(
    onboarding: Dict[str, Any],
    client: Dict[str, Any],
    flow: Optional[Dict[str, Any]],
    owner_email: str,
    store=supabase_client,
) -> Dict[str, Any]:
    """
    Tell the workspace owner a client finished, logged as `onboarding_complete`.

    Raises:
        DependencyFailureError / SupabaseError
    """
    message = email_service.completion_email(
        client_name=client.get("name") or "A client",
        client_email=client.get("email") or "",
        flow_name=(flow or {}).get("name") or "onboarding",
        dashboard_url=dashboard_url(client["id"]),
    )
    result = await email_service.send_email(owner_email, message)
    await store.log_notification(
        onboarding["id"],
        NotificationType.ONBOARDING_COMPLETE.value,
        owner_email,
        {"client_id": client["id"], "flow_id": onboarding.get("flow_id")},
    )
    logger.info("completion_notice_sent", onboarding_id=onboarding["id"], client_id=client["id"])
    return result
