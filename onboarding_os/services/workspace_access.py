"""
Workspace guards for provider-side operations.

Every flow and client belongs to one workspace. A provider may only touch
records of their current workspace; anything else is reported as not found
so record ids from other workspaces cannot be probed.
"""

from typing import Any, Dict, Optional, Type

import structlog

from onboarding_os.core.exceptions import AuthenticationError, NotFoundError

logger = structlog.get_logger(__name__)


def require_workspace_id(provider: Dict[str, Any]) -> str:
    workspace_id = provider.get("current_workspace_id")
    if not workspace_id:
        raise AuthenticationError("No workspace selected")
    return workspace_id


def ensure_same_workspace(
    record: Optional[Dict[str, Any]],
    provider: Dict[str, Any],
    not_found: Type[NotFoundError],
    label: str,
) -> Dict[str, Any]:
    """Return the record if it exists in the provider's workspace, else raise not_found."""
    workspace_id = require_workspace_id(provider)
    if not record:
        raise not_found(f"{label} not found")
    if record.get("workspace_id") != workspace_id:
        logger.warning(
            "cross_workspace_access_denied",
            record_type=label.lower(),
            record_id=record.get("id"),
            user_id=provider.get("id"),
        )
        raise not_found(f"{label} not found")
    return record
