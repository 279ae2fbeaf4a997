"""
Logging configuration for the Client Onboarding OS API and workers.

- Structured JSON logging in production, console rendering elsewhere
- trace_id injected from structlog contextvars (see TraceMiddleware)
- Portal tokens and secrets are masked before rendering
"""

import logging
import os
from typing import Any, Dict

import structlog

# Keys whose values must never reach a log sink
REDACTED_KEYS = frozenset(
    {"token", "portal_token", "authorization", "cron_secret", "internal_secret", "password"}
)


class CorrelationIdFilter(logging.Filter):
    """
    Inject correlation_id (trace_id) from structlog context into standard logging records.
    This ensures trace_id appears in all logs, even from third-party libraries.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation_id to log record from structlog context."""
        contextvars = structlog.contextvars.get_contextvars()
        record.correlation_id = contextvars.get("trace_id", "")
        return True


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor: mask bearer credentials passed as log fields."""
    for key in list(event_dict):
        if key.lower() in REDACTED_KEYS and event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def configure_structlog() -> None:
    """
    Configure structlog using the stdlib integration pattern so
    logger.info("event", key=val) works everywhere.
    """
    env = os.getenv("ENVIRONMENT", "development")

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if env == "production":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]


def get_log_level() -> str:
    """
    Get log level from environment with sensible defaults.

    Returns:
        Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    env = os.getenv("ENVIRONMENT", "development")
    log_level = os.getenv("LOG_LEVEL", "").upper()

    if log_level in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        return log_level

    defaults = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return defaults.get(env, "INFO")


def configure_logging() -> None:
    """
    Initialize logging for the API process and RQ workers.

    Call once at startup. Configures both standard logging and structlog.
    """
    configure_structlog()

    logging.getLogger().setLevel(get_log_level())

    # Suppress noisy third-party loggers
    for name in ("httpx", "httpcore", "hpack", "urllib3", "asyncio"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("step_completed", onboarding_id=onboarding_id)
    """
    return structlog.get_logger(name)
