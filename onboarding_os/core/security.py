import hmac
import secrets
from typing import Optional

import structlog
from onboarding_os.core.config import settings

logger = structlog.get_logger()


class Security:
    """Portal tokens and shared-secret checks."""

    def __init__(self, token_bytes: Optional[int] = None):
        self.token_bytes = token_bytes or settings.portal_token_bytes

    def generate_portal_token(self) -> str:
        """
        Unguessable bearer credential for the client portal.

        Drawn from the OS CSPRNG; url-safe so it can sit in the /c/<token> path.
        """
        return secrets.token_urlsafe(self.token_bytes)

    @staticmethod
    def build_portal_url(token: str) -> str:
        return f"{settings.app_url.rstrip('/')}/c/{token}"

    @staticmethod
    def verify_shared_secret(provided: Optional[str], expected: str) -> bool:
        """Constant-time comparison. An empty expected secret never matches."""
        if not expected or not provided:
            return False
        return hmac.compare_digest(provided.encode(), expected.encode())


security = Security()
