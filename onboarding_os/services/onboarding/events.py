"""
Outbound domain events.

OnboardingCompleted is published after the COMPLETED flip has been persisted.
The RQ publisher hands it to the notifications queue; the handlers run later
in the API process via the worker callback, each with its own failure
isolation.
"""

import structlog
from rq import Retry

from onboarding_os.domain.schemas import OnboardingCompletedEvent

logger = structlog.get_logger(__name__)


class RQEventPublisher:
    """Publishes domain events as jobs on the notifications queue."""

    def __init__(self, queue=None):
        self._queue = queue

    @property
    def queue(self):
        if self._queue is None:
            from onboarding_os.core.rq_app import notifications_queue

            self._queue = notifications_queue
        return self._queue

    def publish_onboarding_completed(self, event: OnboardingCompletedEvent) -> None:
        from onboarding_os.services.jobs.tasks import _RETRY_INTERVALS, handle_onboarding_completed_task

        payload = event.model_dump(mode="json", by_alias=True)
        job = self.queue.enqueue(
            handle_onboarding_completed_task,
            payload,
            job_id=f"onboarding-completed-{event.onboarding_id}",
            retry=Retry(max=3, interval=_RETRY_INTERVALS[:3]),
        )
        logger.info(
            "onboarding_completed_event_published",
            onboarding_id=event.onboarding_id,
            job_id=job.id,
        )


event_publisher = RQEventPublisher()
