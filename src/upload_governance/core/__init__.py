"""
Upload Governance Core Module.

Provides the error taxonomy and time sources shared by every component.
"""

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    # Exceptions
    "GovernanceError",
    "ValidationError",
    "InvalidPrincipalError",
    "InvalidPathError",
    "ConfigurationError",
    "StoreError",
    "BlobStoreError",
    "BlobNotFoundError",
    "BlobUnauthorizedError",
    "MetadataStoreError",
    "MetadataNotFoundError",
    "QuotaStoreError",
    "StoreUnavailableError",
    "ItemOperationError",
    "UploadError",
]

from upload_governance.core.clock import Clock, ManualClock, SystemClock
from upload_governance.core.exceptions import (
    BlobNotFoundError,
    BlobStoreError,
    BlobUnauthorizedError,
    ConfigurationError,
    GovernanceError,
    InvalidPathError,
    InvalidPrincipalError,
    ItemOperationError,
    MetadataNotFoundError,
    MetadataStoreError,
    QuotaStoreError,
    StoreError,
    StoreUnavailableError,
    UploadError,
    ValidationError,
)
