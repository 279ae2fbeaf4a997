"""
Workspace activity logging.

Writes one activity_logs row per notable onboarding event so the provider
dashboard can show a timeline.
"""

from typing import Any, Dict, Optional

import structlog

from onboarding_os.infrastructure.supabase_client import supabase_client

logger = structlog.get_logger(__name__)


async def log_activity(
    workspace_id: Optional[str],
    action: str,
    client_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    store=supabase_client,
) -> None:
    """
    Log a workspace activity.

    Args:
        workspace_id: Workspace the activity belongs to
        action: Action name (e.g., 'onboarding_completed')
        client_id: Client the activity concerns
        metadata: JSON details shown in the timeline

    Raises:
        SupabaseError: the row could not be written
    """
    await store.log_activity(
        workspace_id=workspace_id,
        action=action,
        client_id=client_id,
        metadata=metadata or {},
    )
    logger.info(
        "activity_logged",
        workspace_id=workspace_id,
        action=action,
        client_id=client_id,
    )
