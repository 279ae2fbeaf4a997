from onboarding_os.services.jobs.tasks import (
    handle_onboarding_completed_task,
    send_reminders_task,
    _RETRY_INTERVALS,
)
from onboarding_os.services.jobs.task_exceptions import (
    TaskError,
    CallbackRejectedError,
    CallbackUnavailableError,
)
from onboarding_os.services.jobs.reminder_job import is_reminder_due, send_reminders

__all__ = [
    "handle_onboarding_completed_task",
    "send_reminders_task",
    "TaskError",
    "CallbackRejectedError",
    "CallbackUnavailableError",
    "is_reminder_due",
    "send_reminders",
]
