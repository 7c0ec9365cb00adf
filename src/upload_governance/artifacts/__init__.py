"""
Upload Governance Artifacts Module.

Provides blob storage, the metadata index, the upload path, and
time-to-live reclamation across both stores.
"""

from .models import (
    ArtifactMetadata,
    CleanupOutcome,
    ItemFailure,
    ItemState,
    UploadResult,
)
from .blob_store import BlobStore, LocalBlobStore, validate_blob_path
from .metadata_index import MetadataIndex, SqliteMetadataIndex
from .retention import MAX_TTL_DAYS, RetentionCollector, ttl_from_days
from .upload import UploadService, build_upload_path

__all__ = [
    # Models
    "ArtifactMetadata",
    "CleanupOutcome",
    "ItemFailure",
    "ItemState",
    "UploadResult",
    # Storage
    "BlobStore",
    "LocalBlobStore",
    "validate_blob_path",
    "MetadataIndex",
    "SqliteMetadataIndex",
    # Retention
    "RetentionCollector",
    "MAX_TTL_DAYS",
    "ttl_from_days",
    # Upload
    "UploadService",
    "build_upload_path",
]
