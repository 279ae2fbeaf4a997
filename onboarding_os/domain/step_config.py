"""
Per-step-type configuration and submitted-data shapes.

Each StepType has one config model (author time) and one data model
(client time). Configs are stored as JSON on onboarding_steps.config; the
loaders below accept both the current camelCase keys and the legacy keys
written by the original dashboard editor (contractText, maxFileSize, ...).
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, field_validator

from onboarding_os.domain.schemas import CamelCaseModel, StepType, to_camel

DEFAULT_ALLOWED_EXTENSIONS = ["pdf", "doc", "docx", "png", "jpg", "jpeg"]
DEFAULT_CONTRACT_TEXT = "I agree to the terms and conditions."
DEFAULT_ACCEPT_LABEL = "I agree"


class FormFieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    PHONE = "phone"
    URL = "url"
    SELECT = "select"


class SelectOption(CamelCaseModel):
    label: str
    value: str


# ---------------------------------------------------------------------------
# Configs
# ---------------------------------------------------------------------------

class WelcomeConfig(CamelCaseModel):
    """WELCOME steps carry no configuration."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class FormFieldConfig(CamelCaseModel):
    id: str = Field(..., min_length=1)
    type: FormFieldType = FormFieldType.TEXT
    label: str
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[SelectOption]] = None


class FormConfig(CamelCaseModel):
    fields: List[FormFieldConfig] = Field(default_factory=list)

    @field_validator("fields")
    @classmethod
    def field_ids_unique(cls, v: List[FormFieldConfig]) -> List[FormFieldConfig]:
        seen = set()
        for field in v:
            if field.id in seen:
                raise ValueError(f"Duplicate form field id: {field.id}")
            seen.add(field.id)
        return v


class FileUploadConfig(CamelCaseModel):
    max_files: int = Field(default=5, ge=1)
    max_file_size_mb: float = Field(
        default=10,
        gt=0,
        validation_alias=AliasChoices("maxFileSizeMB", "maxFileSize", "max_file_size_mb"),
        serialization_alias="maxFileSizeMB",
    )
    allowed_extensions: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS),
        validation_alias=AliasChoices("allowedExtensions", "allowedFileTypes", "allowed_extensions"),
        serialization_alias="allowedExtensions",
    )

    @field_validator("allowed_extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        normalized = [ext.strip().lstrip(".").lower() for ext in v if ext and ext.strip()]
        return normalized or list(DEFAULT_ALLOWED_EXTENSIONS)

    @property
    def max_file_size_bytes(self) -> int:
        return int(self.max_file_size_mb * 1024 * 1024)


class ContractConfig(CamelCaseModel):
    body_text: str = Field(
        default=DEFAULT_CONTRACT_TEXT,
        validation_alias=AliasChoices("bodyText", "contractText", "body_text"),
        serialization_alias="bodyText",
    )
    accept_label: str = Field(
        default=DEFAULT_ACCEPT_LABEL,
        validation_alias=AliasChoices("acceptLabel", "acceptButtonText", "accept_label"),
        serialization_alias="acceptLabel",
    )


class ScheduleConfig(CamelCaseModel):
    scheduling_url: str = ""


StepConfig = Union[WelcomeConfig, FormConfig, FileUploadConfig, ContractConfig, ScheduleConfig]

CONFIG_MODELS = {
    StepType.WELCOME: WelcomeConfig,
    StepType.FORM: FormConfig,
    StepType.FILE_UPLOAD: FileUploadConfig,
    StepType.CONTRACT: ContractConfig,
    StepType.SCHEDULE: ScheduleConfig,
}


# ---------------------------------------------------------------------------
# Submitted data
# ---------------------------------------------------------------------------

class UploadedFile(CamelCaseModel):
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    size_bytes: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("sizeBytes", "size", "size_bytes"),
        serialization_alias="sizeBytes",
    )
    path: Optional[str] = None


class FileUploadData(CamelCaseModel):
    files: List[UploadedFile] = Field(default_factory=list)


class ContractData(CamelCaseModel):
    agreed: StrictBool
    agreed_at: Optional[datetime] = None


class ScheduleData(BaseModel):
    """Self-attested booking confirmation; nothing beyond the timestamp is kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    scheduled_at: Optional[datetime] = None
