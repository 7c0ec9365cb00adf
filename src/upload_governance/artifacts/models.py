"""
Pydantic models for stored artifacts and cleanup results.

Defines the metadata record kept for every stored blob, the per-item
reclamation states, and the aggregate result of a cleanup pass.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from upload_governance.core.clock import ensure_utc
from upload_governance.quota.models import AdmissionDecision


class ArtifactMetadata(BaseModel):
    """
    Metadata record for one stored blob.

    Records are immutable once created; they are only ever inserted
    and deleted.
    """

    model_config = ConfigDict(frozen=True)

    artifact_id: str = Field(default="", description="Store-assigned unique id")
    owner_id: str = Field(description="Principal that uploaded the artifact")
    path: str = Field(description="Locator of the blob in the blob store")
    created_at: datetime = Field(description="Upload instant (UTC)")
    size_bytes: int = Field(default=0, ge=0, description="Size of the blob in bytes")
    display_name: str = Field(default="", description="Original file name")
    content_type: str | None = Field(default=None, description="MIME type if known")

    @field_validator("created_at")
    @classmethod
    def validate_created_at(cls, v: datetime) -> datetime:
        """Store instants as aware UTC."""
        return ensure_utc(v)


class ItemState(Enum):
    """Reclamation state of one expired artifact."""

    PENDING = "pending"
    BLOB_DELETING = "blob_deleting"
    BLOB_DELETED = "blob_deleted"
    BLOB_DELETE_FAILED = "blob_delete_failed"
    META_DELETING = "meta_deleting"
    RECLAIMED = "reclaimed"
    META_DELETE_FAILED = "meta_delete_failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ItemState.RECLAIMED, ItemState.BLOB_DELETE_FAILED, ItemState.META_DELETE_FAILED)


class ItemFailure(BaseModel):
    """One artifact that a cleanup pass could not reclaim."""

    path: str = Field(description="Blob locator of the failed artifact")
    error: str = Field(description="Description of the failure")
    artifact_id: str | None = Field(default=None, description="Metadata record id")
    state: ItemState = Field(description="Terminal state the item ended in")


class CleanupOutcome(BaseModel):
    """Result of one retention pass."""

    deleted: int = Field(default=0, ge=0, description="Artifacts fully reclaimed")
    failed: int = Field(default=0, ge=0, description="Artifacts left for the next pass")
    errors: list[ItemFailure] = Field(default_factory=list, description="Per-item failures")
    cutoff: datetime | None = Field(default=None, description="Records created before this were expired")
    ttl_seconds: float = Field(default=0.0, ge=0, description="TTL the pass ran with")
    interrupted: bool = Field(
        default=False, description="True if a later page of the expired query failed"
    )
    interruption: str | None = Field(default=None, description="Why the pass stopped early")
    duration_ms: float | None = Field(default=None, description="Wall time of the pass")

    @property
    def attempted(self) -> int:
        return self.deleted + self.failed

    def to_summary(self) -> dict[str, object]:
        """Convert to the operator-facing summary."""
        summary: dict[str, object] = {
            "deleted": self.deleted,
            "failed": self.failed,
            "errors": [{"path": e.path, "error": e.error} for e in self.errors],
        }
        if self.interrupted:
            summary["interrupted"] = True
            summary["interruption"] = self.interruption
        return summary


class UploadResult(BaseModel):
    """Result of the upload path."""

    decision: AdmissionDecision = Field(description="Admission decision taken before storing")
    path: str | None = Field(default=None, description="Blob locator if stored")
    artifact_id: str | None = Field(
        default=None, description="Metadata record id (None if the record insert failed)"
    )
    created_at: datetime | None = Field(default=None, description="Upload instant")
    size_bytes: int = Field(default=0, ge=0)
    metadata_error: str | None = Field(
        default=None, description="Set when the blob was stored but its record was not"
    )

    @property
    def stored(self) -> bool:
        return self.path is not None

    @property
    def orphaned(self) -> bool:
        """Blob stored without a metadata record."""
        return self.stored and self.artifact_id is None
