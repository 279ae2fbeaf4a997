"""
Step Type Registry.

Maps each StepType to its configuration model and its submission validator.
validate_submission() is the only way step data reaches the store: it either
returns the normalized payload to persist or raises StepValidationError with
every problem found. There is no partial acceptance.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Type, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from onboarding_os.core.config import settings
from onboarding_os.core.exceptions import FieldError, StepConfigError, StepValidationError
from onboarding_os.domain.schemas import StepType
from onboarding_os.domain.step_config import (
    CONFIG_MODELS,
    ContractConfig,
    ContractData,
    FileUploadConfig,
    FileUploadData,
    FormConfig,
    FormFieldType,
    ScheduleConfig,
    ScheduleData,
    StepConfig,
    WelcomeConfig,
)
from onboarding_os.utils.field_validation import coerce_form_value, is_blank, validate_email

logger = structlog.get_logger(__name__)

# Upper bound for anything a provider can allow on a step
GLOBAL_ALLOWED_EXTENSIONS = [
    "pdf", "doc", "docx", "xls", "xlsx",
    "png", "jpg", "jpeg", "gif", "webp",
    "txt", "csv",
]

Validator = Callable[[Any, Any, datetime], Dict[str, Any]]


class StepTypeSpec(NamedTuple):
    config_model: Type[BaseModel]
    validate: Validator


def _pydantic_errors(exc: PydanticValidationError, scoped: bool = False) -> List[FieldError]:
    """Flatten pydantic errors. Step-scoped unless scoped=True keeps the location."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        message = err.get("msg", "Invalid value")
        if scoped and loc:
            errors.append(FieldError(message=message, field=loc))
        else:
            errors.append(FieldError(message=f"{loc}: {message}" if loc else message))
    return errors


def parse_step_config(step_type: Union[StepType, str], raw: Optional[Dict[str, Any]]) -> StepConfig:
    """
    Load a stored or submitted config into the model for its step type.

    Raises:
        StepConfigError: config does not match the step type's schema
    """
    step_type = StepType(step_type)
    model = CONFIG_MODELS[step_type]
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw or {})
    except PydanticValidationError as exc:
        raise StepConfigError(_pydantic_errors(exc, scoped=True), details={"step_type": step_type.value})


def dump_step_config(config: StepConfig) -> Dict[str, Any]:
    """Serialize a config for storage in onboarding_steps.config."""
    return config.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Validators, one per step type
# ---------------------------------------------------------------------------

def _validate_welcome(config: WelcomeConfig, data: Any, now: datetime) -> Dict[str, Any]:
    return {}


def _validate_form(config: FormConfig, data: Any, now: datetime) -> Dict[str, Any]:
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise StepValidationError([FieldError("Form data must be an object of field values")])

    errors: List[FieldError] = []
    accepted: Dict[str, str] = {}

    # Unknown field ids are dropped, only configured fields are kept
    for field in config.fields:
        value, error = coerce_form_value(data.get(field.id))
        if error:
            errors.append(FieldError(error, field=field.id))
            continue

        if is_blank(value):
            if field.required:
                errors.append(FieldError("This field is required", field=field.id))
            continue

        if field.type == FormFieldType.EMAIL:
            ok, message = validate_email(value.strip())
            if not ok:
                errors.append(FieldError(message, field=field.id))
                continue

        if field.type == FormFieldType.SELECT and field.options:
            allowed = {option.value for option in field.options}
            if value not in allowed:
                errors.append(FieldError("Please choose one of the available options", field=field.id))
                continue

        accepted[field.id] = value

    if errors:
        raise StepValidationError(errors)
    return accepted


def effective_upload_config(config: FileUploadConfig) -> FileUploadConfig:
    """Intersect the step's limits with the global ones."""
    allowed = [ext for ext in config.allowed_extensions if ext in GLOBAL_ALLOWED_EXTENSIONS]
    max_mb = min(config.max_file_size_mb, settings.upload_max_file_size_mb)
    # An empty intersection must reject everything rather than fall back to defaults
    return config.model_copy(update={"allowed_extensions": allowed, "max_file_size_mb": max_mb})


def check_file(name: str, size_bytes: int, config: FileUploadConfig) -> List[FieldError]:
    """
    Per-file rules: extension in the allow-list (case-insensitive) and size
    within the step limit. Used when a file is accepted for upload and again
    when the step is submitted.
    """
    errors = []
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if not ext:
        errors.append(FieldError(f'File "{name}" must have an extension'))
    elif ext not in config.allowed_extensions:
        errors.append(
            FieldError(
                f'File type ".{ext}" is not allowed. Allowed types: {", ".join(config.allowed_extensions) or "none"}'
            )
        )
    if size_bytes > config.max_file_size_bytes:
        size_mb = size_bytes / (1024 * 1024)
        errors.append(
            FieldError(
                f'File "{name}" ({size_mb:.2f}MB) exceeds the maximum size of {config.max_file_size_mb:g}MB'
            )
        )
    return errors


def _validate_file_upload(config: FileUploadConfig, data: Any, now: datetime) -> Dict[str, Any]:
    if isinstance(data, list):
        data = {"files": data}
    try:
        parsed = FileUploadData.model_validate(data or {})
    except PydanticValidationError as exc:
        raise StepValidationError(_pydantic_errors(exc))

    config = effective_upload_config(config)
    errors: List[FieldError] = []
    if len(parsed.files) > config.max_files:
        errors.append(FieldError(f"You can only upload up to {config.max_files} files"))
    for uploaded in parsed.files:
        errors.extend(check_file(uploaded.name, uploaded.size_bytes, config))

    if errors:
        raise StepValidationError(errors)
    return parsed.model_dump(mode="json", by_alias=True, exclude_none=True)


def _validate_contract(config: ContractConfig, data: Any, now: datetime) -> Dict[str, Any]:
    try:
        parsed = ContractData.model_validate(data or {})
    except PydanticValidationError:
        raise StepValidationError([FieldError("You must accept the agreement to continue")])

    if parsed.agreed is not True:
        raise StepValidationError([FieldError("You must accept the agreement to continue")])

    agreed_at = parsed.agreed_at or now
    return {"agreed": True, "agreedAt": agreed_at.isoformat()}


def _validate_schedule(config: ScheduleConfig, data: Any, now: datetime) -> Dict[str, Any]:
    # Self-attested: the booking happens on an external scheduler we cannot query
    try:
        parsed = ScheduleData.model_validate(data if isinstance(data, dict) else {})
        scheduled_at = parsed.scheduled_at or now
    except PydanticValidationError:
        scheduled_at = now
    return {"scheduled": True, "scheduledAt": scheduled_at.isoformat()}


STEP_TYPE_REGISTRY: Dict[StepType, StepTypeSpec] = {
    StepType.WELCOME: StepTypeSpec(WelcomeConfig, _validate_welcome),
    StepType.FORM: StepTypeSpec(FormConfig, _validate_form),
    StepType.FILE_UPLOAD: StepTypeSpec(FileUploadConfig, _validate_file_upload),
    StepType.CONTRACT: StepTypeSpec(ContractConfig, _validate_contract),
    StepType.SCHEDULE: StepTypeSpec(ScheduleConfig, _validate_schedule),
}


def validate_submission(
    step_type: Union[StepType, str],
    config: Union[StepConfig, Dict[str, Any], None],
    data: Any,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Validate client-submitted data against a step's type and configuration.

    Args:
        step_type: Type of the step being completed
        config: Step configuration (model or stored JSON)
        data: Raw submitted payload
        now: Clock for server-stamped timestamps

    Returns:
        Normalized payload to persist on the step progress record

    Raises:
        StepValidationError: with field-scoped errors for FORM steps and
            step-scoped errors for the other types
        ValueError: unknown step type
    """
    try:
        step_type = StepType(step_type)
    except ValueError:
        raise ValueError(
            f"Unknown step type: {step_type}. "
            f"Available: {[t.value for t in STEP_TYPE_REGISTRY]}"
        )

    step_spec = STEP_TYPE_REGISTRY[step_type]
    parsed_config = parse_step_config(step_type, config)
    validated = step_spec.validate(parsed_config, data, now or datetime.now(timezone.utc))

    logger.debug("step_submission_validated", step_type=step_type.value)
    return validated
