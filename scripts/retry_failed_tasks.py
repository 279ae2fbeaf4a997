#!/usr/bin/env python3
"""
Requeue failed OnboardingCompleted jobs

Jobs land in the failed registry once their RQ retries are exhausted (API
unreachable for the whole back-off). Requeuing is safe: the completion
handlers run once per delivered event and the job id is per onboarding.

Usage:
    python scripts/retry_failed_tasks.py             # Requeue everything failed
    python scripts/retry_failed_tasks.py --dry-run   # Show what would be requeued
    python scripts/retry_failed_tasks.py --limit 20
"""

import argparse
from typing import List

import structlog
from rq.registry import FailedJobRegistry

from onboarding_os.core.logging_config import configure_logging

logger = structlog.get_logger()

COMPLETION_JOB_PREFIX = "onboarding-completed-"


def requeue_failed_jobs(registry, dry_run: bool = False, limit: int = 100) -> List[str]:
    """Requeue failed completion jobs from the registry. Returns the job ids."""
    job_ids = [job_id for job_id in registry.get_job_ids() if job_id.startswith(COMPLETION_JOB_PREFIX)]
    job_ids = job_ids[:limit]

    if not job_ids:
        logger.info("no_failed_jobs_found")
        return []

    for job_id in job_ids:
        if dry_run:
            print(f"Would requeue: {job_id}")
            continue
        registry.requeue(job_id)
        logger.info("job_requeued", job_id=job_id)

    logger.info("requeue_complete", total=len(job_ids), dry_run=dry_run)
    return job_ids


def main():
    parser = argparse.ArgumentParser(description="Requeue failed OnboardingCompleted jobs")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be requeued without actually doing it",
    )
    parser.add_argument("--limit", type=int, default=100, help="Max number of jobs to requeue")
    args = parser.parse_args()

    configure_logging()

    from onboarding_os.core.rq_app import notifications_queue

    registry = FailedJobRegistry(queue=notifications_queue)
    job_ids = requeue_failed_jobs(registry, dry_run=args.dry_run, limit=args.limit)
    print(f"\n{'Found' if args.dry_run else 'Requeued'} {len(job_ids)} jobs")


if __name__ == "__main__":
    main()
