"""Custom exceptions for domain-specific errors"""

from typing import Any, Dict, List, Optional


class DomainException(Exception):
    """Base exception for all domain errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# Authentication Errors
class AuthenticationError(DomainException):
    """Raised when authentication fails"""

    pass


class InvalidPortalTokenError(AuthenticationError):
    """Raised when a portal token does not resolve to an onboarding"""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(message="Invalid token", details=details)


class InvalidCronSecretError(AuthenticationError):
    """Raised when the scheduled job is called without the shared secret"""

    def __init__(self):
        super().__init__(message="Unauthorized")


# Lookup Errors
class NotFoundError(DomainException):
    """Raised when a referenced record does not exist or is not visible to the caller"""

    pass


class FlowNotFoundError(NotFoundError):
    """Raised when a flow definition does not exist"""

    pass


class ClientNotFoundError(NotFoundError):
    """Raised when a client does not exist"""

    pass


class OnboardingNotFoundError(NotFoundError):
    """Raised when an onboarding does not exist"""

    pass


class StepNotFoundError(NotFoundError):
    """Raised when a step template or step progress record does not exist"""

    pass


class InvalidStepError(DomainException):
    """Raised when a step progress record does not belong to the token's onboarding"""

    def __init__(self, step_progress_id: Optional[str] = None):
        super().__init__(
            message="Invalid step",
            details={"step_progress_id": step_progress_id} if step_progress_id else None,
        )


# Validation Errors
class FieldError:
    """One validation failure. field is None for step-scoped errors."""

    __slots__ = ("field", "message")

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        self.message = message

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"field": self.field, "message": self.message}

    def __eq__(self, other):
        if not isinstance(other, FieldError):
            return NotImplemented
        return (self.field, self.message) == (other.field, other.message)

    def __repr__(self):
        return f"FieldError(field={self.field!r}, message={self.message!r})"


class StepValidationError(DomainException):
    """Raised when submitted step data violates its step type's rules"""

    def __init__(self, errors: List[FieldError], details: Optional[Dict[str, Any]] = None):
        self.errors = errors
        message = errors[0].message if len(errors) == 1 else "Submitted data is invalid"
        super().__init__(message, details)


class StepConfigError(StepValidationError):
    """Raised when a step template's configuration does not match its type"""

    pass


# State Transition Errors
class InvalidStateTransitionError(DomainException):
    """Raised when an operation is not allowed from the record's current state"""

    pass


class FlowNotPublishedError(InvalidStateTransitionError):
    """Raised when assigning a flow that is not PUBLISHED"""

    def __init__(self, flow_id: str, status: str):
        super().__init__(
            message="Only published flows can be assigned to clients",
            details={"flow_id": flow_id, "status": status},
        )


class FlowHasActiveOnboardingsError(InvalidStateTransitionError):
    """Raised when deleting a flow that still has active onboardings"""

    def __init__(self, flow_id: str):
        super().__init__(
            message=(
                "Cannot delete flow with active onboardings. "
                "Complete or remove client onboardings first."
            ),
            details={"flow_id": flow_id},
        )


class FlowLockedError(InvalidStateTransitionError):
    """Raised when editing the steps of a flow that onboardings already reference"""

    def __init__(self, flow_id: str):
        super().__init__(
            message=(
                "Steps cannot be changed once the flow has been assigned to a client. "
                "Duplicate the flow to make changes."
            ),
            details={"flow_id": flow_id},
        )


class StepAlreadyCompletedError(InvalidStateTransitionError):
    """Raised internally when a completed step receives another submission"""

    pass


class ReminderNotAllowedError(InvalidStateTransitionError):
    """Raised when a manual reminder has no eligible onboarding"""

    pass


# External Service Errors
class ExternalServiceError(DomainException):
    """Raised when external service call fails"""

    pass


class SupabaseError(ExternalServiceError):
    """Raised when Supabase operation fails"""

    pass


class StorageError(ExternalServiceError):
    """Raised when a blob storage operation fails"""

    pass


class DependencyFailureError(ExternalServiceError):
    """Raised when a downstream collaborator (email, queue) fails"""

    pass
