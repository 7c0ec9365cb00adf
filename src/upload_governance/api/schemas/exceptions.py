"""
Exception classes for API error handling.
"""

from upload_governance.core.exceptions import (
    GovernanceError,
    StoreUnavailableError,
    ValidationError as GovernanceValidationError,
)


class APIException(Exception):
    """
    Base exception for API errors.

    All API exceptions should inherit from this class to ensure
    consistent error response formatting.
    """

    status_code: int = 500
    error_type: str = "api_error"
    message: str = "An error occurred"
    detail: str | None = None

    def __init__(
        self,
        message: str | None = None,
        detail: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message or self.message
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(APIException):
    """Exception raised when request validation fails."""

    status_code = 400
    error_type = "validation_error"
    message = "Request validation failed"

    def __init__(self, fields: dict[str, str]) -> None:
        self.fields = fields
        super().__init__(message=f"Validation failed for {len(fields)} field(s)")


class BadRequestError(APIException):
    """Exception raised when a governance operation rejects its input."""

    status_code = 400
    error_type = "bad_request"
    message = "Invalid request"


class InternalError(APIException):
    """Exception raised for internal server errors."""

    status_code = 500
    error_type = "internal_error"
    message = "Internal server error"


class ServiceUnavailableError(APIException):
    """Exception raised when a required store is unavailable."""

    status_code = 503
    error_type = "service_unavailable"
    message = "Service temporarily unavailable"


def from_governance_error(exc: GovernanceError) -> APIException:
    """Map a governance error onto its HTTP counterpart."""
    detail = str(exc) if exc.details else None
    if isinstance(exc, GovernanceValidationError):
        return BadRequestError(message=exc.message, detail=detail)
    if isinstance(exc, StoreUnavailableError):
        return ServiceUnavailableError(message=exc.message, detail=detail)
    return InternalError(message=exc.message, detail=detail)
