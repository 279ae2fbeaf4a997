"""
File validation service for client uploads.
Checks the extension against the global and per-step allow-lists, the size
against both ceilings, and sniffs the MIME type from the magic bytes.
"""

import os
import re
from typing import Any, Dict, List

import structlog

from onboarding_os.core.exceptions import FieldError, StepValidationError
from onboarding_os.domain.step_config import FileUploadConfig
from onboarding_os.services.steps import check_file, effective_upload_config

logger = structlog.get_logger()

EXPECTED_MIME_PREFIXES: Dict[str, List[str]] = {
    "pdf": ["application/pdf"],
    "doc": ["application/msword", "application/x-ole-storage", "application/CDFV2"],
    "docx": ["application/vnd.openxmlformats-officedocument", "application/zip"],
    "xls": ["application/vnd.ms-excel", "application/x-ole-storage", "application/CDFV2"],
    "xlsx": ["application/vnd.openxmlformats-officedocument", "application/zip"],
    "png": ["image/png"],
    "jpg": ["image/jpeg"],
    "jpeg": ["image/jpeg"],
    "gif": ["image/gif"],
    "webp": ["image/webp"],
    "txt": ["text/"],
    "csv": ["text/", "application/csv"],
}

_SAFE_EXT = re.compile(r"[^a-z0-9]")


class FileValidator:
    """
    Validates uploaded files for a FILE_UPLOAD step.
    """

    def __init__(self):
        self._magic = None

    @property
    def magic(self):
        # libmagic is loaded on first upload, not at import
        if self._magic is None:
            import magic

            self._magic = magic.Magic(mime=True)
        return self._magic

    @staticmethod
    def sanitize_extension(filename: str) -> str:
        _, ext = os.path.splitext(filename or "")
        return _SAFE_EXT.sub("", ext.lower())

    def detect_mime_type(self, content: bytes, filename: str, ext: str) -> str:
        """Sniff the MIME type. A mismatch with the extension is only logged."""
        try:
            mime_type = self.magic.from_buffer(content[:2048])
        except Exception as e:
            logger.warning("mime_detection_failed", filename=filename, error=str(e))
            return "application/octet-stream"

        expected = EXPECTED_MIME_PREFIXES.get(ext, [])
        if expected and not any(mime_type.startswith(prefix) for prefix in expected):
            logger.warning(
                "mime_type_mismatch",
                filename=filename,
                extension=ext,
                detected_mime=mime_type,
            )
        return mime_type

    def validate_all(self, content: bytes, filename: str, config: FileUploadConfig) -> Dict[str, Any]:
        """
        Run all checks on an uploaded file.

        Returns:
            {"extension", "size_bytes", "mime_type"}

        Raises:
            StepValidationError: extension or size not accepted
        """
        ext = self.sanitize_extension(filename)
        if not ext:
            raise StepValidationError([FieldError("File must have an extension")])

        effective = effective_upload_config(config)
        stem, _ = os.path.splitext(os.path.basename(filename))
        # Size is taken from the buffer actually read, not from client headers
        errors = check_file(f"{stem or 'upload'}.{ext}", len(content), effective)
        if errors:
            logger.info("file_rejected", filename=filename, extension=ext, size=len(content))
            raise StepValidationError(errors)

        mime_type = self.detect_mime_type(content, filename, ext)

        logger.info(
            "file_validation_complete",
            filename=filename,
            extension=ext,
            size_bytes=len(content),
            mime_type=mime_type,
        )
        return {"extension": ext, "size_bytes": len(content), "mime_type": mime_type}


file_validator = FileValidator()
