from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from onboarding_os.core.config import settings
from onboarding_os.core.exceptions import AuthenticationError, InvalidCronSecretError
from onboarding_os.core.security import security
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.onboarding.events import event_publisher

logger = structlog.get_logger()

# HTTP Bearer scheme for Supabase access tokens
bearer_scheme = HTTPBearer()
optional_bearer_scheme = HTTPBearer(auto_error=False)


def get_store():
    """Store used by the services. Overridden in tests."""
    return supabase_client


def get_event_publisher():
    return event_publisher


async def get_current_provider(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    store=Depends(get_store),
) -> dict:
    """
    Dependency to get the authenticated provider from a Supabase access token.

    The profile carries current_workspace_id, which scopes every flow and
    client the provider may touch.
    """
    user = await store.verify_token_and_get_user(credentials.credentials)

    user_id = user.get("id")
    if not user_id:
        logger.warning("token_missing_user_id")
        raise AuthenticationError("Token missing user information")

    profile = await store.get_profile(user_id)
    if not profile:
        logger.warning("provider_profile_missing", user_id=user_id)
        raise AuthenticationError("Profile not found")

    # Email lives on the auth user, not in profiles
    return {**profile, "id": user_id, "email": user.get("email")}


async def verify_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_bearer_scheme),
) -> None:
    """
    Authorization: Bearer <CRON_SECRET> on the reminder sweep.

    Without a configured secret the check is skipped outside production;
    production refuses to start without one (see Settings).
    """
    if not settings.cron_secret:
        if settings.is_production:
            raise InvalidCronSecretError()
        logger.warning("cron_secret_not_configured")
        return

    provided = credentials.credentials if credentials else ""
    if not security.verify_shared_secret(provided, settings.cron_secret):
        logger.warning("invalid_cron_secret")
        raise InvalidCronSecretError()


def verify_internal_secret(x_internal_secret: str = Header(...)) -> None:
    """X-Internal-Secret on worker callbacks."""
    if not settings.internal_api_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="INTERNAL_API_SECRET is not configured on the API service",
        )
    if not security.verify_shared_secret(x_internal_secret, settings.internal_api_secret):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid worker secret",
        )
