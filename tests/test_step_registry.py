"""Tests for the step type registry: config parsing and submission validation."""
from datetime import datetime, timezone

import pytest

from onboarding_os.core.exceptions import FieldError, StepConfigError, StepValidationError
from onboarding_os.domain.schemas import StepType
from onboarding_os.domain.step_config import DEFAULT_ALLOWED_EXTENSIONS, FileUploadConfig
from onboarding_os.services.steps import (
    STEP_TYPE_REGISTRY,
    check_file,
    dump_step_config,
    effective_upload_config,
    parse_step_config,
    validate_submission,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)

FORM_CONFIG = {
    "fields": [
        {"id": "company", "type": "text", "label": "Company", "required": True},
        {"id": "email", "type": "email", "label": "Email", "required": True},
        {
            "id": "plan",
            "type": "select",
            "label": "Plan",
            "options": [{"value": "basic", "label": "Basic"}, {"value": "pro", "label": "Pro"}],
        },
        {"id": "notes", "type": "textarea", "label": "Notes"},
    ]
}


def test_every_step_type_is_registered():
    assert set(STEP_TYPE_REGISTRY) == set(StepType)


def test_welcome_accepts_anything_and_stores_nothing():
    assert validate_submission("WELCOME", {}, None, now=NOW) == {}
    assert validate_submission(StepType.WELCOME, None, {"whatever": 1}, now=NOW) == {}


def test_form_accepts_required_fields_and_drops_unknown_ids():
    data = validate_submission(
        "FORM",
        FORM_CONFIG,
        {"company": "Acme", "email": "a@acme.io", "plan": "pro", "unknown": "x"},
        now=NOW,
    )
    assert data == {"company": "Acme", "email": "a@acme.io", "plan": "pro"}


def test_form_reports_every_failing_field():
    with pytest.raises(StepValidationError) as exc_info:
        validate_submission("FORM", FORM_CONFIG, {"company": "   ", "email": "not-an-email", "plan": "gold"}, now=NOW)

    errors = exc_info.value.errors
    assert FieldError("This field is required", field="company") in errors
    assert FieldError("Please enter a valid email", field="email") in errors
    assert FieldError("Please choose one of the available options", field="plan") in errors
    assert len(errors) == 3


def test_form_missing_required_field_is_field_scoped():
    with pytest.raises(StepValidationError) as exc_info:
        validate_submission("FORM", FORM_CONFIG, {"email": "a@acme.io"}, now=NOW)

    assert exc_info.value.errors == [FieldError("This field is required", field="company")]
    assert exc_info.value.message == "This field is required"


def test_form_rejects_non_object_payload():
    with pytest.raises(StepValidationError) as exc_info:
        validate_submission("FORM", FORM_CONFIG, ["Acme"], now=NOW)
    assert exc_info.value.errors[0].field is None


def test_contract_requires_literal_true():
    for data in ({"agreed": False}, {}, None, {"agreed": "true"}, {"agreed": 1}):
        with pytest.raises(StepValidationError) as exc_info:
            validate_submission("CONTRACT", {}, data, now=NOW)
        assert exc_info.value.errors == [FieldError("You must accept the agreement to continue")]


def test_contract_stamps_agreed_at_when_missing():
    data = validate_submission("CONTRACT", {}, {"agreed": True}, now=NOW)
    assert data == {"agreed": True, "agreedAt": NOW.isoformat()}


def test_contract_keeps_client_timestamp():
    data = validate_submission("CONTRACT", {}, {"agreed": True, "agreedAt": "2026-03-01T10:00:00+00:00"}, now=NOW)
    assert data["agreedAt"] == "2026-03-01T10:00:00+00:00"


def test_schedule_is_self_attested():
    assert validate_submission("SCHEDULE", {"schedulingUrl": "https://cal.test/x"}, {}, now=NOW) == {
        "scheduled": True,
        "scheduledAt": NOW.isoformat(),
    }


def test_file_upload_accepts_allowed_files():
    data = validate_submission(
        "FILE_UPLOAD",
        {"maxFiles": 2, "maxFileSizeMB": 1, "allowedExtensions": ["pdf", "png"]},
        {"files": [{"name": "id.PDF", "url": "https://x/id.pdf", "size": 1024}]},
        now=NOW,
    )
    assert data == {"files": [{"name": "id.PDF", "url": "https://x/id.pdf", "sizeBytes": 1024}]}


def test_file_upload_rejects_extension_size_and_count():
    config = {"maxFiles": 1, "maxFileSizeMB": 1, "allowedExtensions": ["pdf"]}
    files = [
        {"name": "malware.exe", "url": "https://x/1", "size": 10},
        {"name": "big.pdf", "url": "https://x/2", "size": 2 * 1024 * 1024},
    ]
    with pytest.raises(StepValidationError) as exc_info:
        validate_submission("FILE_UPLOAD", config, {"files": files}, now=NOW)

    messages = [e.message for e in exc_info.value.errors]
    assert "You can only upload up to 1 files" in messages
    assert 'File type ".exe" is not allowed. Allowed types: pdf' in messages
    assert any("exceeds the maximum size of 1MB" in m for m in messages)


def test_check_file_case_insensitive_extension():
    config = FileUploadConfig(allowed_extensions=["jpg"])
    assert check_file("PHOTO.JPG", 10, config) == []


def test_unknown_step_type_is_rejected():
    with pytest.raises(ValueError):
        validate_submission("VIDEO", {}, {}, now=NOW)


def test_file_upload_defaults_follow_the_portal():
    config = parse_step_config("FILE_UPLOAD", {})
    assert config.max_files == 5
    assert config.max_file_size_mb == 10
    assert config.allowed_extensions == DEFAULT_ALLOWED_EXTENSIONS


def test_config_round_trips_through_storage_aliases():
    config = parse_step_config("CONTRACT", {"bodyText": "Be nice.", "acceptLabel": "Deal"})
    assert dump_step_config(config) == {"bodyText": "Be nice.", "acceptLabel": "Deal"}


def test_invalid_config_raises_config_error():
    with pytest.raises(StepConfigError) as exc_info:
        parse_step_config("FORM", {"fields": [{"id": "a", "label": "A"}, {"id": "a", "label": "B"}]})
    assert exc_info.value.errors
    assert exc_info.value.details == {"step_type": "FORM"}


def test_file_upload_submission_is_capped_by_global_limits():
    config = {"maxFileSizeMB": 500, "allowedExtensions": ["exe"]}
    files = [{"name": "a.exe", "url": "https://x/a", "size": 400 * 1024 * 1024}]

    with pytest.raises(StepValidationError) as exc_info:
        validate_submission("FILE_UPLOAD", config, {"files": files}, now=NOW)

    messages = [e.message for e in exc_info.value.errors]
    assert 'File type ".exe" is not allowed. Allowed types: none' in messages
    assert any("exceeds the maximum size of 10MB" in m for m in messages)


def test_effective_upload_config_intersects_with_global_limits():
    config = FileUploadConfig(allowed_extensions=["pdf", "exe"], max_file_size_mb=50)

    effective = effective_upload_config(config)

    assert effective.allowed_extensions == ["pdf"]
    assert effective.max_file_size_mb == 10
