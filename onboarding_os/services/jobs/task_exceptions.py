"""
Custom exceptions for RQ jobs.

These exceptions allow fine-grained control over retry behavior:
- Some errors should retry (transient failures)
- Some errors should NOT retry (permanent failures like a rejected payload)
"""


class TaskError(Exception):
    """Base exception for all task errors"""

    def __init__(self, message: str, onboarding_id: str | None = None, task_id: str | None = None):
        self.message = message
        self.onboarding_id = onboarding_id
        self.task_id = task_id
        super().__init__(message)


class CallbackUnavailableError(TaskError):
    """API callback failed with a 5xx or could not be reached (should retry)"""

    pass


class CallbackRejectedError(TaskError):
    """API callback refused the payload with a 4xx (should NOT retry)"""

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        self.status_code = status_code
        super().__init__(message, **kwargs)
