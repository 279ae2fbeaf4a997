from onboarding_os.services.notifications.activity_log import log_activity
from onboarding_os.services.notifications.notifier import (
    send_completion_notice,
    send_reminder,
    send_welcome,
)

__all__ = [
    "log_activity",
    "send_completion_notice",
    "send_reminder",
    "send_welcome",
]
