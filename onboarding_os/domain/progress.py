"""
Derived onboarding status and progress.

Every mutation path (step submission, step start, completion cascade) and
every read model goes through these functions, so the stored
client_onboardings.status can never disagree with its step progress rows.
"""

from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Optional, Union

from onboarding_os.domain.schemas import DueDateStatus, OnboardingStatus, StepProgressStatus


def _status_of(step: Union[str, Mapping[str, Any]]) -> str:
    if isinstance(step, Mapping):
        return step.get("status") or StepProgressStatus.NOT_STARTED.value
    return str(step.value if isinstance(step, StepProgressStatus) else step)


def derive_onboarding_status(steps: Iterable[Union[str, Mapping[str, Any]]]) -> OnboardingStatus:
    """
    COMPLETED iff every step is COMPLETED, NOT_STARTED iff every step is
    NOT_STARTED, IN_PROGRESS otherwise.

    An onboarding with no steps has nothing left to do and is NOT_STARTED;
    assignment never creates one, so the case only matters for bad data.
    """
    statuses = [_status_of(step) for step in steps]
    if not statuses:
        return OnboardingStatus.NOT_STARTED
    if all(s == StepProgressStatus.COMPLETED.value for s in statuses):
        return OnboardingStatus.COMPLETED
    if all(s == StepProgressStatus.NOT_STARTED.value for s in statuses):
        return OnboardingStatus.NOT_STARTED
    return OnboardingStatus.IN_PROGRESS


def calculate_progress(steps: Iterable[Union[str, Mapping[str, Any]]]) -> int:
    """Percentage of completed steps, rounded half up. 0 for an empty list."""
    statuses = [_status_of(step) for step in steps]
    if not statuses:
        return 0
    completed = sum(1 for s in statuses if s == StepProgressStatus.COMPLETED.value)
    # half-up, same as the dashboard
    return int(100 * completed / len(statuses) + 0.5)


def get_due_date_status(due_date: Optional[Union[str, date]], now: Optional[datetime] = None) -> DueDateStatus:
    """Classify a due date as overdue, due-soon (within 2 days), on-track or none."""
    if not due_date:
        return DueDateStatus(status="none", days_remaining=None)

    if isinstance(due_date, str):
        due_date = date.fromisoformat(due_date[:10])
    elif isinstance(due_date, datetime):
        due_date = due_date.date()

    today = (now or datetime.now(timezone.utc)).date()
    days_remaining = (due_date - today).days

    if days_remaining < 0:
        return DueDateStatus(status="overdue", days_remaining=days_remaining)
    if days_remaining <= 2:
        return DueDateStatus(status="due-soon", days_remaining=days_remaining)
    return DueDateStatus(status="on-track", days_remaining=days_remaining)


def parse_timestamp(value: Optional[Union[str, datetime]]) -> Optional[datetime]:
    """Parse a Supabase timestamp (ISO string, possibly with Z) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
