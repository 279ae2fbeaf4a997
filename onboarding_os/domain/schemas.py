from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def to_camel(string: str) -> str:
    """Convert snake_case to camelCase"""
    components = string.split("_")
    return components[0] + "".join(x.title() for x in components[1:])


class CamelCaseModel(BaseModel):
    """Base model with camelCase alias configuration"""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,  # Allow both snake_case and camelCase
    )


class FlowStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class StepType(str, Enum):
    WELCOME = "WELCOME"
    FORM = "FORM"
    FILE_UPLOAD = "FILE_UPLOAD"
    CONTRACT = "CONTRACT"
    SCHEDULE = "SCHEDULE"


class OnboardingStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class StepProgressStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


# Onboardings in these states block flow deletion
ACTIVE_ONBOARDING_STATUSES = [OnboardingStatus.NOT_STARTED.value, OnboardingStatus.IN_PROGRESS.value]


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationType(str, Enum):
    ONBOARDING_COMPLETE = "onboarding_complete"
    REMINDER = "reminder"
    WELCOME = "welcome"


# Flow Definition Schemas
class StepTemplateInput(CamelCaseModel):
    type: StepType
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    config: Dict[str, Any] = Field(default_factory=dict)


class FlowCreate(CamelCaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    steps: List[StepTemplateInput] = Field(default_factory=list)


class FlowUpdate(CamelCaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    steps: Optional[List[StepTemplateInput]] = None


class StepReorderRequest(CamelCaseModel):
    step_ids: List[str]


class StepTemplateResponse(CamelCaseModel):
    id: str
    type: StepType
    title: str
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)
    order: int


class FlowResponse(CamelCaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: FlowStatus
    steps: List[StepTemplateResponse] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Onboarding Schemas
class AssignFlowRequest(CamelCaseModel):
    client_id: str
    flow_id: str
    priority: Priority = Priority.NORMAL
    due_date: Optional[date] = None
    send_welcome_email: bool = False


class AssignFlowResponse(CamelCaseModel):
    onboarding_id: str
    portal_token: str
    portal_url: str


class StepProgressResponse(CamelCaseModel):
    id: str
    status: StepProgressStatus
    data: Any = Field(default_factory=dict)
    completed_at: Optional[datetime] = None
    step: StepTemplateResponse


class DueDateStatus(CamelCaseModel):
    status: str  # overdue, due-soon, on-track, none
    days_remaining: Optional[int] = None


class OnboardingDetailResponse(CamelCaseModel):
    id: str
    client_id: str
    flow_id: str
    status: OnboardingStatus
    progress: int
    priority: Priority = Priority.NORMAL
    due_date: Optional[date] = None
    due_date_status: DueDateStatus
    last_activity_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    steps: List[StepProgressResponse] = Field(default_factory=list)


class ManualReminderRequest(CamelCaseModel):
    client_id: str


class ManualReminderResponse(CamelCaseModel):
    success: bool = True
    onboarding_id: str
    # True when email delivery is switched off and the send was simulated
    mock: bool = False


class SuccessResponse(CamelCaseModel):
    success: bool = True


# Client Portal Schemas
class PortalRequest(CamelCaseModel):
    token: str = Field(..., min_length=1)


class StartStepRequest(PortalRequest):
    step_progress_id: str = Field(..., min_length=1)


class CompleteStepRequest(PortalRequest):
    step_progress_id: str = Field(..., min_length=1)
    data: Any = None


class CompleteStepResponse(CamelCaseModel):
    success: bool = True
    all_completed: bool


class WorkspaceBranding(CamelCaseModel):
    name: str
    logo_url: Optional[str] = None
    brand_color: Optional[str] = None


class PortalViewResponse(CamelCaseModel):
    onboarding_id: str
    status: OnboardingStatus
    progress: int
    client_name: Optional[str] = None
    flow_name: Optional[str] = None
    flow_description: Optional[str] = None
    workspace: Optional[WorkspaceBranding] = None
    steps: List[StepProgressResponse] = Field(default_factory=list)


class UploadFileResponse(CamelCaseModel):
    success: bool = True
    url: str
    path: str
    file_name: str
    file_size: int


# Reminder Schemas
class ReminderResult(CamelCaseModel):
    onboarding_id: str
    email: Optional[str] = None
    sent: bool = False
    skipped: bool = False
    reason: Optional[str] = None
    error: Optional[str] = None


class ReminderSweepResponse(CamelCaseModel):
    success: bool = True
    message: str
    sent_count: int
    results: List[ReminderResult] = Field(default_factory=list)


# Events
class OnboardingCompletedEvent(CamelCaseModel):
    """Published once per onboarding, after the COMPLETED flip is persisted."""

    onboarding_id: str
    client_id: str
    flow_id: str
    completed_at: datetime


class CompletionHandlerResult(CamelCaseModel):
    handler: str
    ok: bool
    error: Optional[str] = None


class CompletionHandlersResponse(CamelCaseModel):
    success: bool = True
    onboarding_id: str
    results: List[CompletionHandlerResult] = Field(default_factory=list)
