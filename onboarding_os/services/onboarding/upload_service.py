"""
File acceptance for FILE_UPLOAD steps.

The file is checked against the step's configuration (and the global limits)
before it reaches storage. The step itself is not completed here; the client
submits the collected file list afterwards and it is validated again.
"""

import secrets
from datetime import datetime, timezone
from typing import Optional

import structlog

from onboarding_os.core.exceptions import InvalidStateTransitionError, InvalidStepError
from onboarding_os.domain.schemas import StepProgressStatus, StepType, UploadFileResponse
from onboarding_os.infrastructure.supabase_client import supabase_client
from onboarding_os.services.integrations.file_validator import file_validator
from onboarding_os.services.onboarding.submission_service import load_step, resolve_token
from onboarding_os.services.steps import parse_step_config

logger = structlog.get_logger(__name__)


def build_storage_path(client_id: str, onboarding_id: str, extension: str) -> str:
    return f"{client_id}/{onboarding_id}/{secrets.token_hex(16)}.{extension}"


async def accept_upload(
    token: str,
    step_progress_id: str,
    filename: str,
    content: bytes,
    *,
    store=supabase_client,
    now: Optional[datetime] = None,
) -> UploadFileResponse:
    """
    Validate and store one uploaded file for a step.

    Raises:
        InvalidPortalTokenError / InvalidStepError
        InvalidStateTransitionError: step is already COMPLETED
        StepValidationError: extension or size rejected
        StorageError: the upload itself failed
    """
    now = now or datetime.now(timezone.utc)
    onboarding = await resolve_token(token, store)
    step_progress = await load_step(onboarding, step_progress_id, store)

    step = step_progress["step"]
    if step.get("type") != StepType.FILE_UPLOAD.value:
        raise InvalidStepError(step_progress_id)
    if step_progress.get("status") == StepProgressStatus.COMPLETED.value:
        raise InvalidStateTransitionError(
            "This step has already been completed",
            details={"step_progress_id": step_progress_id},
        )

    config = parse_step_config(StepType.FILE_UPLOAD, step.get("config"))
    checked = file_validator.validate_all(content, filename, config)

    path = build_storage_path(onboarding["client_id"], onboarding["id"], checked["extension"])
    url = await store.upload_file(path, content, checked["mime_type"])

    await store.touch_onboarding_activity(onboarding["id"], now.isoformat())

    logger.info(
        "step_file_uploaded",
        onboarding_id=onboarding["id"],
        step_progress_id=step_progress_id,
        path=path,
        size_bytes=checked["size_bytes"],
    )
    return UploadFileResponse(
        url=url,
        path=path,
        file_name=filename,
        file_size=checked["size_bytes"],
    )
