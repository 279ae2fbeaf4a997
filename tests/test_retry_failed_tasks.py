"""Tests for the failed-job requeue script."""
from scripts.retry_failed_tasks import requeue_failed_jobs


class FakeRegistry:
    def __init__(self, job_ids):
        self.job_ids = job_ids
        self.requeued = []

    def get_job_ids(self):
        return list(self.job_ids)

    def requeue(self, job_id):
        self.requeued.append(job_id)


def test_only_completion_jobs_are_requeued():
    registry = FakeRegistry(["onboarding-completed-a", "other-job", "onboarding-completed-b"])

    assert requeue_failed_jobs(registry) == ["onboarding-completed-a", "onboarding-completed-b"]
    assert registry.requeued == ["onboarding-completed-a", "onboarding-completed-b"]


def test_dry_run_and_limit():
    registry = FakeRegistry(["onboarding-completed-a", "onboarding-completed-b"])

    assert requeue_failed_jobs(registry, dry_run=True, limit=1) == ["onboarding-completed-a"]
    assert registry.requeued == []
