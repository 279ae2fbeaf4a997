"""
RQ job functions: thin HTTP callers only.

Every job delegates its business logic to an endpoint on the API service
(onboarding_os/api/v1/worker_callbacks.py and cron.py). Jobs are only
responsible for:
  1. POSTing to the right URL via httpx
  2. Retry / back-off policy (via RQ Retry passed at enqueue time)
  3. Mapping terminal HTTP errors (4xx) to non-retriable outcomes
     (caught exceptions are NOT re-raised so RQ won't retry them)

Inter-service auth : X-Internal-Secret header (INTERNAL_API_SECRET) for worker
                     callbacks, Authorization: Bearer CRON_SECRET for the sweep
Callback base URL  : INTERNAL_API_URL env var
"""
import uuid
from typing import Any, Dict, Optional

import httpx
import structlog

from onboarding_os.core.config import settings
from onboarding_os.services.jobs.task_exceptions import (
    CallbackRejectedError,
    CallbackUnavailableError,
)

logger = structlog.get_logger()

# Exponential-backoff intervals (seconds) for retriable jobs: 10s, 30s, 60s, 2m, 5m
_RETRY_INTERVALS = [10, 30, 60, 120, 300]


# ---------------------------------------------------------------------------
# HTTP helper
# ---------------------------------------------------------------------------

def _post_internal(
    path: str,
    body: Dict[str, Any],
    *,
    headers: Optional[Dict[str, str]] = None,
    trace_id: Optional[str] = None,
    onboarding_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Synchronous POST to an API endpoint under /api/v1.

    Raises:
        CallbackRejectedError    - on 4xx (terminal, no retry)
        CallbackUnavailableError - on 5xx or transport failure (retriable)
    """
    base_url = (settings.internal_api_url or "http://localhost:8000").rstrip("/")
    url = f"{base_url}{settings.api_v1_prefix}{path}"
    request_headers = {
        "X-Internal-Secret": settings.internal_api_secret or "",
        "Content-Type": "application/json",
        **(headers or {}),
    }
    if trace_id:
        request_headers["X-Trace-Id"] = trace_id

    log = logger.bind(path=path, trace_id=trace_id)

    try:
        with httpx.Client(timeout=120) as client:
            resp = client.post(url, json=body, headers=request_headers)
    except httpx.HTTPError as exc:
        log.error("worker_callback_unreachable", error=str(exc))
        raise CallbackUnavailableError(f"Callback {path} unreachable: {exc}", onboarding_id=onboarding_id)

    data: Dict[str, Any] = {}
    try:
        data = resp.json()
    except ValueError:
        data = {"detail": resp.text}

    if resp.status_code in (200, 201):
        return data

    if 400 <= resp.status_code < 500:
        log.warning("worker_callback_terminal_error", status=resp.status_code, error=data.get("error"))
        raise CallbackRejectedError(
            data.get("message", str(data)),
            status_code=resp.status_code,
            onboarding_id=onboarding_id,
        )

    # 5xx or anything else -> retriable
    log.error("worker_callback_retriable_error", status=resp.status_code, body=data)
    raise CallbackUnavailableError(
        f"Callback {path} returned {resp.status_code}: {data.get('message', '')}",
        onboarding_id=onboarding_id,
    )


# ---------------------------------------------------------------------------
# Job functions
# ---------------------------------------------------------------------------

def handle_onboarding_completed_task(event: Dict[str, Any]) -> Dict[str, Any]:
    """POST /api/v1/worker/events/onboarding-completed: run the completion handlers.

    Enqueue with Retry(max=3, interval=_RETRY_INTERVALS[:3]) for
    CallbackUnavailableError. A rejected event is logged and dropped.
    """
    trace_id = event.get("traceId") or str(uuid.uuid4())
    structlog.contextvars.bind_contextvars(trace_id=trace_id)
    onboarding_id = event.get("onboardingId")
    try:
        return _post_internal(
            "/worker/events/onboarding-completed",
            event,
            trace_id=trace_id,
            onboarding_id=onboarding_id,
        )
    except CallbackRejectedError as exc:
        logger.warning("onboarding_completed_task_terminal", error=str(exc), onboarding_id=onboarding_id)
        return {"success": False, "terminal": True, "error": str(exc)}


def send_reminders_task() -> Dict[str, Any]:
    """POST /api/v1/cron/send-reminders (scheduled)."""
    headers = {"Authorization": f"Bearer {settings.cron_secret}"} if settings.cron_secret else {}
    return _post_internal("/cron/send-reminders", {}, headers=headers)

