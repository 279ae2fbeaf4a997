"""Tests for FILE_UPLOAD acceptance."""
import pytest

from onboarding_os.core.exceptions import InvalidStateTransitionError, InvalidStepError, StepValidationError
from onboarding_os.services.integrations.file_validator import file_validator
from onboarding_os.services.onboarding import accept_upload, submit_step

UPLOAD_STEPS = [
    {"type": "WELCOME", "title": "Welcome", "config": {}},
    {
        "type": "FILE_UPLOAD",
        "title": "Documents",
        "config": {"maxFiles": 2, "maxFileSizeMB": 1, "allowedExtensions": ["pdf", "exe"]},
    },
]

PDF_BYTES = b"%PDF-1.7\n" + b"0" * 100


class FakeMagic:
    def from_buffer(self, content):
        return "application/pdf" if content.startswith(b"%PDF") else "application/octet-stream"


@pytest.fixture(autouse=True)
def fake_magic(monkeypatch):
    monkeypatch.setattr(file_validator, "_magic", FakeMagic())


async def _upload_step(store, make_onboarding):
    result = await make_onboarding(UPLOAD_STEPS)
    rows = await store.list_step_progress(result["onboarding"]["id"])
    return result, rows[0]["id"], rows[1]["id"]


async def test_accepts_allowed_file(store, make_onboarding):
    result, _, upload = await _upload_step(store, make_onboarding)
    onboarding = result["onboarding"]

    response = await accept_upload(result["response"].portal_token, upload, "passport.pdf", PDF_BYTES, store=store)

    assert response.path.startswith(f"{onboarding['client_id']}/{onboarding['id']}/")
    assert response.path.endswith(".pdf")
    assert response.url == f"https://storage.test/client-files/{response.path}"
    assert response.file_size == len(PDF_BYTES)
    assert store.uploads[response.path] == PDF_BYTES
    assert store.onboardings[onboarding["id"]]["last_activity_at"] is not None
    # Uploading does not complete the step
    assert store.step_progress[upload]["status"] == "NOT_STARTED"


async def test_extension_outside_global_allow_list_is_rejected(store, make_onboarding):
    result, _, upload = await _upload_step(store, make_onboarding)

    with pytest.raises(StepValidationError) as exc_info:
        await accept_upload(result["response"].portal_token, upload, "setup.exe", b"MZ", store=store)

    assert "not allowed" in exc_info.value.errors[0].message
    assert store.uploads == {}


async def test_oversized_file_is_rejected(store, make_onboarding):
    result, _, upload = await _upload_step(store, make_onboarding)

    with pytest.raises(StepValidationError):
        await accept_upload(
            result["response"].portal_token, upload, "big.pdf", b"%PDF" + b"0" * (1024 * 1024), store=store
        )


async def test_only_file_upload_steps_accept_files(store, make_onboarding):
    result, welcome, _ = await _upload_step(store, make_onboarding)

    with pytest.raises(InvalidStepError):
        await accept_upload(result["response"].portal_token, welcome, "a.pdf", PDF_BYTES, store=store)


async def test_completed_step_accepts_no_more_files(store, publisher, make_onboarding):
    result, _, upload = await _upload_step(store, make_onboarding)
    token = result["response"].portal_token
    uploaded = await accept_upload(token, upload, "a.pdf", PDF_BYTES, store=store)
    await submit_step(
        token,
        upload,
        {"files": [{"name": uploaded.file_name, "url": uploaded.url, "size": uploaded.file_size}]},
        store=store,
        publisher=publisher,
    )

    with pytest.raises(InvalidStateTransitionError):
        await accept_upload(token, upload, "b.pdf", PDF_BYTES, store=store)
