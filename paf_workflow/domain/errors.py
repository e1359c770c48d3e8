"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "retryable": self.retryable,
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class ForbiddenError(DomainError):
    """Actor's role may not perform the action"""
    error_code = "FORBIDDEN"
    http_status = 403


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class InvalidTemplateError(ValidationError):
    """Workflow template step ordering is malformed"""
    error_code = "INVALID_TEMPLATE"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class TemplateNotFoundError(NotFoundError):
    """Workflow template not found"""
    error_code = "TEMPLATE_NOT_FOUND"


class SubmissionNotFoundError(NotFoundError):
    """PAF submission not found"""
    error_code = "SUBMISSION_NOT_FOUND"


class StepNotFoundError(NotFoundError):
    """Approval step not found"""
    error_code = "STEP_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Request conflicts with the current state"""
    error_code = "CONFLICT"
    http_status = 409


class InvalidTransitionError(ConflictError):
    """Status does not permit the requested operation"""
    error_code = "INVALID_TRANSITION"


class StepOutOfOrderError(ConflictError):
    """Acting on a step other than the current one"""
    error_code = "STEP_OUT_OF_ORDER"


class ConcurrentModificationError(ConflictError):
    """Lost a compare-and-set race on the same record"""
    error_code = "CONCURRENT_MODIFICATION"


# Infrastructure Errors
class UnavailableError(DomainError):
    """Persistence layer unreachable or timed out"""
    error_code = "UNAVAILABLE"
    http_status = 503
    retryable = True
