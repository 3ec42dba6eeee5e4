"""
hackathon_api/errors.py
Centralized error handling

CORE PRINCIPLES:
- Every failure is mapped before it crosses a request boundary
- Errors are user-safe (no stack traces)
- Errors are machine-readable

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "errors": [{"field": ..., "message": ...}] (optional, per-field problems),
    "details": {} (optional)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input, missing body reference, business rule violated
- 401: Authentication missing or expired
- 403: Caller lacks role or ownership
- 404: Path resource does not exist
- 409: Duplicate team/submission/certificate/enrollment, capacity reached
- 429: Rate limit exceeded
- 500: Unexpected store failure (never caused by user input)
"""
import logging
import uuid
from typing import Optional, Dict, Any, List

from fastapi import status
from fastapi.responses import JSONResponse

from hackathon_api.state_machines.base import Rejection, RejectionKind

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_ID = "INVALID_ID"
    REFERENCE_NOT_FOUND = "REFERENCE_NOT_FOUND"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_EXPIRED = "AUTH_EXPIRED"
    AUTH_INVALID = "AUTH_INVALID"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    FORBIDDEN = "FORBIDDEN"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_EVENT_ORGANIZER = "NOT_EVENT_ORGANIZER"
    NOT_TEAM_MEMBER = "NOT_TEAM_MEMBER"
    NOT_TEAM_LEADER = "NOT_TEAM_LEADER"

    NOT_FOUND = "NOT_FOUND"

    EMAIL_EXISTS = "EMAIL_EXISTS"
    ALREADY_IN_TEAM = "ALREADY_IN_TEAM"
    TEAM_NAME_TAKEN = "TEAM_NAME_TAKEN"
    TEAM_FULL = "TEAM_FULL"
    ALREADY_ENROLLED = "ALREADY_ENROLLED"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    DUPLICATE_CERTIFICATE = "DUPLICATE_CERTIFICATE"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"

    INVALID_STATE = "INVALID_STATE"
    STATE_TRANSITION_INVALID = "STATE_TRANSITION_INVALID"
    EVENT_INACTIVE = "EVENT_INACTIVE"
    EVENT_STARTED = "EVENT_STARTED"
    LEADER_HAS_MEMBERS = "LEADER_HAS_MEMBERS"
    CANNOT_REMOVE_SELF = "CANNOT_REMOVE_SELF"
    ENROLLMENT_REQUIRED = "ENROLLMENT_REQUIRED"
    TEAM_EVENT_MISMATCH = "TEAM_EVENT_MISMATCH"
    DEADLINE_PASSED = "DEADLINE_PASSED"
    TEAM_SIZE_BELOW_MEMBERS = "TEAM_SIZE_BELOW_MEMBERS"

    RATE_LIMITED = "RATE_LIMITED"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class APIError(Exception):
    """Base API exception with consistent structure"""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        code: str,
        errors: Optional[List[Dict[str, Any]]] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        self.error = error
        self.message = message
        self.code = code
        self.errors = errors
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "success": False,
            "error": self.error,
            "message": self.message,
            "code": self.code
        }
        if self.errors:
            result["errors"] = self.errors
        if self.details:
            result["details"] = self.details
        return result

    def to_response(self) -> JSONResponse:
        """Convert to FastAPI JSONResponse"""
        return JSONResponse(status_code=self.status_code, content=self.to_dict())


class BadRequestError(APIError):
    """400 Bad Request - Invalid input"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_INPUT, errors: Optional[List[Dict]] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Bad Request",
            message=message,
            code=code,
            errors=errors
        )


class ReferenceValidationError(BadRequestError):
    """400 - A body field references an entity that does not exist"""
    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        super().__init__(message, code=ErrorCode.REFERENCE_NOT_FOUND, errors=errors)


class InvalidStateError(APIError):
    """400 Bad Request - Business rule or state transition violated"""
    def __init__(self, message: str, code: str = ErrorCode.INVALID_STATE, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error="Invalid State",
            message=message,
            code=code,
            details=details
        )


class UnauthorizedError(APIError):
    """401 Unauthorized - Authentication required"""
    def __init__(self, message: str = "Authentication required", code: str = ErrorCode.AUTH_REQUIRED):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="Unauthorized",
            message=message,
            code=code
        )


class ForbiddenError(APIError):
    """403 Forbidden - Access denied"""
    def __init__(self, message: str, code: str = ErrorCode.FORBIDDEN, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="Forbidden",
            message=message,
            code=code,
            details=details
        )


class NotFoundError(APIError):
    """404 Not Found - Resource does not exist"""
    def __init__(self, resource: str, identifier: Any = None, code: str = ErrorCode.NOT_FOUND):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=message,
            code=code
        )


class ConflictError(APIError):
    """409 Conflict - Duplicate resource or exhausted capacity"""
    def __init__(self, message: str, code: str = ErrorCode.DUPLICATE_RESOURCE, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="Conflict",
            message=message,
            code=code,
            details=details
        )


class InternalError(APIError):
    """500 Internal Server Error - Use sparingly, only for true internal failures"""
    def __init__(self, message: str = "An internal error occurred", log_id: Optional[str] = None):
        details = {"log_id": log_id} if log_id else None
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="Internal Error",
            message=message,
            code=ErrorCode.INTERNAL_ERROR,
            details=details
        )


def error_from_rejection(rejection: Rejection) -> APIError:
    """Map a rule-engine rejection to the matching API error."""
    if rejection.kind == RejectionKind.CONFLICT:
        return ConflictError(rejection.reason, code=rejection.code)
    if rejection.kind == RejectionKind.FORBIDDEN:
        return ForbiddenError(rejection.reason, code=rejection.code)
    if rejection.kind == RejectionKind.NOT_FOUND:
        return APIError(
            status_code=status.HTTP_404_NOT_FOUND,
            error="Not Found",
            message=rejection.reason,
            code=rejection.code
        )
    return InvalidStateError(rejection.reason, code=rejection.code)


def new_log_id() -> str:
    return str(uuid.uuid4())[:8]


def get_error_summary() -> Dict[str, Any]:
    """Return summary of error handling system for documentation"""
    return {
        "service": "api-error-handler",
        "response_structure": {
            "success": "boolean (always false for errors)",
            "error": "string (error type)",
            "message": "string (human-readable)",
            "code": "string (machine-readable)",
            "errors": "array of {field, message} (optional)",
            "details": "object (optional)"
        },
        "status_codes": {
            "400": "Invalid input, missing reference or business rule violation",
            "401": "Authentication missing or expired",
            "403": "Caller lacks role or ownership",
            "404": "Resource does not exist",
            "409": "Duplicate resource or capacity reached",
            "429": "Rate limit exceeded",
            "500": "Internal error (never caused by user input)"
        },
        "error_codes": [
            attr for attr in dir(ErrorCode)
            if not attr.startswith('_')
        ]
    }
