from onboarding_os.services.onboarding.assignment_service import (
    assign_flow,
    delete_client,
    get_onboarding_detail,
    send_manual_reminder,
)
from onboarding_os.services.onboarding.completion import CompletionOutcome, reconcile_onboarding_status
from onboarding_os.services.onboarding.events import RQEventPublisher, event_publisher
from onboarding_os.services.onboarding.handlers import run_completion_handlers
from onboarding_os.services.onboarding.submission_service import SubmitResult, start_step, submit_step
from onboarding_os.services.onboarding.upload_service import accept_upload
from onboarding_os.services.onboarding.views import get_portal_view

__all__ = [
    "assign_flow",
    "delete_client",
    "get_onboarding_detail",
    "send_manual_reminder",
    "CompletionOutcome",
    "reconcile_onboarding_status",
    "RQEventPublisher",
    "event_publisher",
    "run_completion_handlers",
    "SubmitResult",
    "start_step",
    "submit_step",
    "accept_upload",
    "get_portal_view",
]
