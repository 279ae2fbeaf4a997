from onboarding_os.services.steps.registry import (
    GLOBAL_ALLOWED_EXTENSIONS,
    STEP_TYPE_REGISTRY,
    StepTypeSpec,
    check_file,
    dump_step_config,
    effective_upload_config,
    parse_step_config,
    validate_submission,
)

__all__ = [
    "GLOBAL_ALLOWED_EXTENSIONS",
    "STEP_TYPE_REGISTRY",
    "StepTypeSpec",
    "check_file",
    "dump_step_config",
    "effective_upload_config",
    "parse_step_config",
    "validate_submission",
]
