import logging
from contextlib import asynccontextmanager
from typing import Callable

import sentry_sdk
import structlog
from onboarding_os.core.logging_config import configure_logging

# Initialize production logging configuration
configure_logging()

_startup_logger = logging.getLogger(__name__)

# Initialize Sentry (no-op if SENTRY_DSN is empty)
from onboarding_os.core.config import settings as _early_settings
if _early_settings.sentry_dsn:
    sentry_sdk.init(
        dsn=_early_settings.sentry_dsn,
        environment=_early_settings.environment,
        traces_sample_rate=0.1,
        profiles_sample_rate=0.05,
    )

# Import routers
from onboarding_os.api.rate_limit import limiter
from onboarding_os.api.v1 import cron, flows, onboardings, portal, worker_callbacks
from onboarding_os.core.config import settings
from onboarding_os.core.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    InvalidStateTransitionError,
    InvalidStepError,
    NotFoundError,
    ReminderNotAllowedError,
    StepValidationError,
    SupabaseError,
)
from onboarding_os.middleware.trace_middleware import TraceMiddleware
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest
from starlette.responses import Response as StarletteResponse

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle"""
    _startup_logger.info("starting_application version=%s", settings.api_version)
    yield
    _startup_logger.info("shutting_down_application")


_is_production = settings.is_production

# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url=None if _is_production else f"{settings.api_v1_prefix}/docs",
    redoc_url=None if _is_production else f"{settings.api_v1_prefix}/redoc",
    openapi_url=None if _is_production else f"{settings.api_v1_prefix}/openapi.json",
)

# CORS: explicit origins only
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-Trace-Id"],
    expose_headers=["Content-Type", "X-Trace-Id"],
    max_age=600,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: StarletteRequest, call_next: Callable) -> StarletteResponse:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Permissions-Policy"] = "camera=(), microphone=(), geolocation=()"
        if _is_production:
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


app.add_middleware(SecurityHeadersMiddleware)

# Trace ID for request tracking across API and workers
app.add_middleware(TraceMiddleware)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# Include routers
app.include_router(flows.router, prefix=settings.api_v1_prefix)
app.include_router(onboardings.router, prefix=settings.api_v1_prefix)
app.include_router(portal.router, prefix=settings.api_v1_prefix)
app.include_router(cron.router, prefix=settings.api_v1_prefix)
app.include_router(worker_callbacks.router, prefix=settings.api_v1_prefix)


def _error(status_code: int, error: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return _error(exc.status_code, "HTTP_ERROR", str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies, before any domain validation"""
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ()) if part != "body") or None, "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.warning("request_validation_error", errors=errors, path=request.url.path)
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        errors=errors,
    )


# Domain exception handlers - convert domain exceptions to HTTP responses
@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    logger.warning("authentication_error", error=exc.message, path=request.url.path)
    return _error(status.HTTP_401_UNAUTHORIZED, "AUTHENTICATION_ERROR", exc.message)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.info("not_found", error=exc.message, path=request.url.path)
    return _error(status.HTTP_404_NOT_FOUND, "NOT_FOUND", exc.message)


@app.exception_handler(InvalidStepError)
async def invalid_step_handler(request: Request, exc: InvalidStepError):
    logger.warning("invalid_step", path=request.url.path, **exc.details)
    return _error(status.HTTP_400_BAD_REQUEST, "INVALID_STEP", exc.message)


@app.exception_handler(StepValidationError)
async def step_validation_handler(request: Request, exc: StepValidationError):
    """Submitted step data rejected; field is null for step-level errors"""
    errors = [error.to_dict() for error in exc.errors]
    logger.info("step_validation_failed", errors=errors, path=request.url.path)
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_FAILED",
        exc.message,
        errors=errors,
    )


@app.exception_handler(ReminderNotAllowedError)
async def reminder_not_allowed_handler(request: Request, exc: ReminderNotAllowedError):
    logger.info("reminder_not_allowed", error=exc.message, path=request.url.path)
    return _error(status.HTTP_400_BAD_REQUEST, "REMINDER_NOT_ALLOWED", exc.message)


@app.exception_handler(InvalidStateTransitionError)
async def invalid_transition_handler(request: Request, exc: InvalidStateTransitionError):
    logger.info(
        "invalid_state_transition",
        error_type=type(exc).__name__,
        error=exc.message,
        path=request.url.path,
    )
    return _error(status.HTTP_409_CONFLICT, "INVALID_STATE_TRANSITION", exc.message)


@app.exception_handler(SupabaseError)
async def supabase_error_handler(request: Request, exc: SupabaseError):
    logger.error("supabase_error", error=str(exc), path=request.url.path)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "DATABASE_ERROR",
        "A database error occurred. Please try again.",
    )


@app.exception_handler(ExternalServiceError)
async def external_service_error_handler(request: Request, exc: ExternalServiceError):
    """Storage and email failures"""
    logger.error("external_service_error", error_type=type(exc).__name__, error=str(exc), path=request.url.path)
    return _error(
        status.HTTP_502_BAD_GATEWAY,
        "DEPENDENCY_FAILURE",
        "A downstream service failed. Please try again.",
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception", error=str(exc), path=request.url.path, exc_info=exc
    )
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
    )


# Health check endpoint
@app.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"status": "ok", "version": settings.api_version})


@app.get(f"{settings.api_v1_prefix}/health")
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def health_v1(request: Request) -> JSONResponse:
    """API v1 health check with rate limiting"""
    return JSONResponse({"status": "ok", "version": settings.api_version})
