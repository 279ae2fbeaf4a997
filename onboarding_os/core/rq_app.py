"""
RQ queues for background work.

notifications: OnboardingCompleted deliveries (one job per onboarding)
maintenance:   scheduled sweeps registered by rq_scheduler_config

Jobs never touch the database themselves; they call back into the API.
"""
import redis
from rq import Queue

from onboarding_os.core.config import settings

# RQ stores pickled payloads, so responses are not decoded
redis_conn = redis.from_url(settings.redis_url, decode_responses=False)

# Callbacks run the completion handlers over HTTP; allow for slow SES sends
NOTIFICATION_JOB_TIMEOUT = 180
MAINTENANCE_JOB_TIMEOUT = 600

notifications_queue = Queue(
    "notifications",
    connection=redis_conn,
    default_timeout=NOTIFICATION_JOB_TIMEOUT,
)
maintenance_queue = Queue(
    "maintenance",
    connection=redis_conn,
    default_timeout=MAINTENANCE_JOB_TIMEOUT,
)
