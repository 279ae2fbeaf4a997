"""Tests for derived onboarding status, progress percentage and due-date status."""
from datetime import date, datetime, timezone

from onboarding_os.domain.progress import (
    calculate_progress,
    derive_onboarding_status,
    get_due_date_status,
    parse_timestamp,
)
from onboarding_os.domain.schemas import OnboardingStatus

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


def test_status_not_started_only_when_every_step_is_not_started():
    assert derive_onboarding_status(["NOT_STARTED", "NOT_STARTED"]) == OnboardingStatus.NOT_STARTED
    assert derive_onboarding_status(["NOT_STARTED", "IN_PROGRESS"]) == OnboardingStatus.IN_PROGRESS


def test_status_completed_only_when_every_step_is_completed():
    assert derive_onboarding_status(["COMPLETED", "COMPLETED"]) == OnboardingStatus.COMPLETED
    assert derive_onboarding_status(["COMPLETED", "NOT_STARTED"]) == OnboardingStatus.IN_PROGRESS


def test_status_accepts_step_progress_rows():
    rows = [{"status": "COMPLETED"}, {"status": "IN_PROGRESS"}]
    assert derive_onboarding_status(rows) == OnboardingStatus.IN_PROGRESS


def test_empty_step_list():
    assert derive_onboarding_status([]) == OnboardingStatus.NOT_STARTED
    assert calculate_progress([]) == 0


def test_progress_rounds_half_up():
    assert calculate_progress(["COMPLETED", "NOT_STARTED", "NOT_STARTED"]) == 33
    assert calculate_progress(["COMPLETED", "COMPLETED", "NOT_STARTED"]) == 67
    assert calculate_progress(["COMPLETED"] * 7 + ["IN_PROGRESS"]) == 88
    assert calculate_progress(["COMPLETED", "IN_PROGRESS"]) == 50
    assert calculate_progress(["COMPLETED", "COMPLETED"]) == 100


def test_in_progress_steps_do_not_count_towards_progress():
    assert calculate_progress(["IN_PROGRESS", "IN_PROGRESS"]) == 0


def test_due_date_status():
    assert get_due_date_status(None, now=NOW).status == "none"
    overdue = get_due_date_status("2026-03-01", now=NOW)
    assert (overdue.status, overdue.days_remaining) == ("overdue", -1)
    assert get_due_date_status(date(2026, 3, 4), now=NOW).status == "due-soon"
    assert get_due_date_status(date(2026, 3, 5), now=NOW).status == "on-track"


def test_parse_timestamp_handles_supabase_formats():
    assert parse_timestamp("2026-03-02T12:00:00Z") == NOW
    assert parse_timestamp("2026-03-02T12:00:00") == NOW
    assert parse_timestamp(None) is None
