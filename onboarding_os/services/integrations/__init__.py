from onboarding_os.services.integrations.file_validator import (
    FileValidator,
    file_validator,
)

__all__ = [
    "FileValidator",
    "file_validator",
]
