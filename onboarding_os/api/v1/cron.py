"""
Scheduled job endpoints.

Called daily by the rq-scheduler job (send_reminders_task) or any external
cron with Authorization: Bearer <CRON_SECRET>.
"""

import structlog
from fastapi import APIRouter, Depends

from onboarding_os.api.dependencies import get_store, verify_cron_secret
from onboarding_os.domain.schemas import ReminderSweepResponse
from onboarding_os.services.jobs.reminder_job import send_reminders

logger = structlog.get_logger()

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.api_route("/send-reminders", methods=["GET", "POST"], response_model=ReminderSweepResponse)
async def send_reminders_sweep(store=Depends(get_store)):
    """Remind clients whose IN_PROGRESS onboarding has been idle too long."""
    return await send_reminders(store)
