"""
Upload Governance Exception Hierarchy.

Defines all custom exceptions used across the governance subsystem.
Quota denials are deliberately absent: they are ordinary values
(see upload_governance.quota.models.QuotaExceeded), not errors.
"""

from typing import Any


class GovernanceError(Exception):
    """
    Base exception for all Upload Governance errors.

    All custom exceptions inherit from this class, allowing
    generic catch blocks and consistent error handling.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a GovernanceError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(GovernanceError):
    """
    Raised when caller-supplied input is invalid.

    These are the caller's fault and are never retried.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if field:
            details["field"] = field

        super().__init__(message, details=details)
        self.field = field


class InvalidPrincipalError(ValidationError):
    """Raised when a principal id is missing or blank."""

    def __init__(self, message: str = "Principal id required"):
        super().__init__(message, field="principal_id")


class InvalidPathError(ValidationError):
    """Raised when an artifact path is missing, blank or escapes the store root."""

    def __init__(self, message: str = "Artifact path required", *, path: str | None = None):
        details = {"path": path} if path else None
        super().__init__(message, field="path", details=details)
        self.path = path


class ConfigurationError(GovernanceError):
    """Raised when configuration cannot be loaded or is invalid."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if source:
            details["source"] = source
        super().__init__(message, details=details)
        self.source = source


class StoreError(GovernanceError):
    """
    Errors raised by a backing store.

    Carries the store name, the operation attempted and the key
    (path or record id) involved so callers can report per-item causes.
    """

    store: str = "store"

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a StoreError.

        Args:
            message: Human-readable error message
            operation: Store operation being performed
            key: Path or record id involved
            details: Optional structured data for debugging
        """
        details = details or {}
        details["store"] = self.store
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key

        super().__init__(message, details=details)
        self.operation = operation
        self.key = key


class BlobStoreError(StoreError):
    """Generic failure of a blob store operation."""

    store = "blob"


class BlobNotFoundError(BlobStoreError):
    """Raised when no object exists at the requested path."""

    def __init__(self, message: str = "Blob not found", *, key: str | None = None, operation: str | None = None):
        super().__init__(message, key=key, operation=operation)


class BlobUnauthorizedError(BlobStoreError):
    """Raised when the blob store refuses the operation."""

    def __init__(
        self,
        message: str = "Permission denied",
        *,
        key: str | None = None,
        operation: str | None = None,
    ):
        super().__init__(message, key=key, operation=operation)


class MetadataStoreError(StoreError):
    """Generic failure of a metadata index operation."""

    store = "metadata"


class MetadataNotFoundError(MetadataStoreError):
    """Raised when a metadata record does not exist."""

    def __init__(self, message: str = "Metadata record not found", *, key: str | None = None):
        super().__init__(message, key=key, operation="delete")


class QuotaStoreError(StoreError):
    """Raised when admission history cannot be persisted."""

    store = "quota"


class StoreUnavailableError(GovernanceError):
    """
    Raised when a whole pass cannot begin.

    Fatal for the current pass only; it is always safe to retry the
    pass later.
    """

    def __init__(self, message: str, *, cause: Exception | None = None):
        details = {"cause": str(cause)} if cause else None
        super().__init__(message, details=details)
        self.cause = cause


class ItemOperationError(GovernanceError):
    """
    A single artifact could not be reclaimed.

    Collected into CleanupOutcome during a pass; only raised directly
    by the explicit single-item delete.
    """

    def __init__(
        self,
        path: str,
        cause: str,
        *,
        artifact_id: str | None = None,
        state: str | None = None,
    ):
        details: dict[str, Any] = {"path": path, "cause": cause}
        if artifact_id:
            details["artifact_id"] = artifact_id
        if state:
            details["state"] = state
        super().__init__(f"Failed to delete {path}", details=details)
        self.path = path
        self.cause = cause
        self.artifact_id = artifact_id
        self.state = state


class UploadError(GovernanceError):
    """Raised when an upload cannot store its blob."""

    def __init__(self, message: str, *, path: str | None = None, cause: Exception | None = None):
        details: dict[str, Any] = {}
        if path:
            details["path"] = path
        if cause is not None:
            details["cause"] = str(cause)
        super().__init__(message, details=details)
        self.path = path
        self.cause = cause


def format_exception(error: Exception) -> str:
    """
    Format an exception for user-friendly display.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, GovernanceError):
        return error.message
    return f"{error.__class__.__name__}: {error}"
