"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

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
                "details": self.details
            }
        }


# Authentication & Authorization Errors
class AuthenticationError(DomainError):
    """Token missing, invalid, or expired"""
    error_code = "AUTHENTICATION_ERROR"
    http_status = 401


class AuthorizationError(DomainError):
    """User lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class PermissionDeniedError(AuthorizationError):
    """Specific permission denied"""
    error_code = "PERMISSION_DENIED"


class NotAssignedError(AuthorizationError):
    """Actor is not the assignee of the step execution"""
    error_code = "NOT_ASSIGNED"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


class RunMismatchError(ValidationError):
    """Step execution does not belong to the addressed run"""
    error_code = "RUN_MISMATCH"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class WorkflowNotFoundError(NotFoundError):
    """Workflow not found or inactive"""
    error_code = "WORKFLOW_NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """Document not found"""
    error_code = "DOCUMENT_NOT_FOUND"


class RunNotFoundError(NotFoundError):
    """Workflow run not found"""
    error_code = "RUN_NOT_FOUND"


class StepExecutionNotFoundError(NotFoundError):
    """Step execution not found"""
    error_code = "STEP_EXECUTION_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict (e.g., concurrent modification)"""
    error_code = "CONFLICT"
    http_status = 409


class ConcurrencyError(ConflictError):
    """Optimistic concurrency conflict"""
    error_code = "CONCURRENCY_CONFLICT"


class AlreadyCompletedError(ConflictError):
    """Step execution already carries a decision"""
    error_code = "ALREADY_COMPLETED"


class RunNotActiveError(ConflictError):
    """Run is completed, failed or cancelled"""
    error_code = "RUN_NOT_ACTIVE"


class StepNoLongerActiveError(ConflictError):
    """Step execution belongs to a step the run has moved past"""
    error_code = "STEP_NO_LONGER_ACTIVE"
