"""
RQ Scheduler configuration: periodic job registrations.

Called once at worker startup to register cron jobs. Uses rq-scheduler's
Scheduler which stores jobs in Redis and fires them via the same RQ worker
process.

Usage:
    python -m onboarding_os.core.rq_scheduler_config
"""
import structlog
from rq_scheduler import Scheduler

from onboarding_os.core.rq_app import maintenance_queue, redis_conn

logger = structlog.get_logger()

PERIODIC_JOBS = [
    # Daily 09:00 UTC: reminders for inactive onboardings
    ("0 9 * * *", "onboarding_os.services.jobs.tasks.send_reminders_task", "send_reminders_task"),
]


def register_periodic_jobs() -> None:
    """Register all cron-style periodic jobs. Safe to call repeatedly; existing jobs are cancelled first."""
    scheduler = Scheduler(queue=maintenance_queue, connection=redis_conn)

    # Cancel any previously registered periodic jobs to avoid duplicates on restart
    for job in scheduler.get_jobs():
        scheduler.cancel(job)
    logger.info("rq_scheduler_cleared_existing_jobs")

    for cron_string, func, job_id in PERIODIC_JOBS:
        scheduler.cron(
            cron_string,
            func=func,
            id=job_id,
            use_local_timezone=False,
        )

    logger.info("rq_scheduler_registered_periodic_jobs", count=len(PERIODIC_JOBS))


if __name__ == "__main__":
    register_periodic_jobs()
