"""
Upload path.

Composes admission control with the two stores:

1. Validate the file name and content
2. Ask the AdmissionController; a denial stops here with no side effects
3. Store the blob under ``uploads/{owner_id}/{epoch_ms}_{name}``
4. Record the admission (the upload is now known to be proceeding)
5. Insert the metadata record with ``created_at = now``

If step 5 fails the blob is left in place, not rolled back. It is then
metadata-orphaned: invisible to retention passes, but still removable
with RetentionCollector.delete_artifact(path).
"""

import logging
from datetime import datetime
from pathlib import PurePosixPath

from upload_governance.artifacts.blob_store import BlobStore
from upload_governance.artifacts.metadata_index import MetadataIndex
from upload_governance.artifacts.models import ArtifactMetadata, UploadResult
from upload_governance.core.clock import Clock, SystemClock, ensure_utc, to_epoch_ms
from upload_governance.core.exceptions import (
    QuotaStoreError,
    StoreError,
    UploadError,
    ValidationError,
    format_exception,
)
from upload_governance.quota.controller import AdmissionController

logger = logging.getLogger(__name__)

UPLOAD_PREFIX = "uploads"


def build_upload_path(owner_id: str, display_name: str, now: datetime) -> str:
    """Locator for a new upload: ``uploads/{owner}/{epoch_ms}_{name}``."""
    name = PurePosixPath(display_name.replace("\\", "/")).name
    if not name or name in (".", ".."):
        raise ValidationError(f"Invalid file name: {display_name!r}", field="display_name")
    return f"{UPLOAD_PREFIX}/{owner_id}/{to_epoch_ms(now)}_{name}"


class UploadService:
    """Admission-governed writes into the blob store and metadata index."""

    def __init__(
        self,
        controller: AdmissionController,
        blob_store: BlobStore,
        metadata_index: MetadataIndex,
        clock: Clock | None = None,
    ):
        self._controller = controller
        self._blobs = blob_store
        self._index = metadata_index
        self._clock = clock or SystemClock()

    def upload(
        self,
        principal_id: str,
        display_name: str,
        content: bytes,
        content_type: str | None = None,
        now: datetime | None = None,
    ) -> UploadResult:
        """
        Store an upload if the principal's quota allows it.

        Args:
            principal_id: Uploading principal
            display_name: Original file name
            content: File bytes
            content_type: Optional MIME type
            now: Upload instant (default: the service clock)

        Returns:
            UploadResult; check ``decision.allowed`` and ``orphaned``

        Raises:
            InvalidPrincipalError: If principal_id is empty
            ValidationError: If the file name or content is empty
            UploadError: If the blob could not be stored
        """
        now = ensure_utc(now) if now is not None else self._clock.now()

        if not display_name or not display_name.strip():
            raise ValidationError("File name required", field="display_name")
        if not content:
            raise ValidationError("No file content provided", field="content")

        decision = self._controller.try_admit(principal_id, now=now)
        if not decision.allowed:
            return UploadResult(decision=decision)

        path = build_upload_path(principal_id, display_name, now)

        try:
            self._blobs.put(path, content)
        except StoreError as e:
            logger.error(f"Storage upload error for {path}: {e}")
            raise UploadError(f"Upload failed: {format_exception(e)}", path=path, cause=e) from e

        logger.info(f"Upload complete: {path} ({len(content)} bytes)")

        try:
            self._controller.record_admission(principal_id, now=now)
        except QuotaStoreError as e:
            # Blob is already stored
            logger.warning(f"Failed to record admission for {principal_id}: {e}")

        record = ArtifactMetadata(
            owner_id=principal_id,
            path=path,
            created_at=now,
            size_bytes=len(content),
            display_name=PurePosixPath(path).name.split("_", 1)[1],
            content_type=content_type,
        )

        artifact_id: str | None = None
        metadata_error: str | None = None
        try:
            artifact_id = self._index.insert(record)
            logger.debug(f"Metadata saved: {artifact_id}")
        except StoreError as e:
            # Blob stays; see module docstring
            metadata_error = format_exception(e)
            logger.error(f"Failed to save metadata for {path}, blob left orphaned: {e}")

        return UploadResult(
            decision=decision,
            path=path,
            artifact_id=artifact_id,
            created_at=now,
            size_bytes=len(content),
            metadata_error=metadata_error,
        )
