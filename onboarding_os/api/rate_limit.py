from slowapi import Limiter
from slowapi.util import get_remote_address

from onboarding_os.core.config import settings

# Shared by the app middleware and the per-route decorators
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

PORTAL_RATE_LIMIT = f"{settings.rate_limit_portal_requests}/minute"
