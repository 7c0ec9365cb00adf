"""
Retention collection.

Reclaims artifacts whose metadata record is older than a time-to-live,
deleting the blob first and the record second. Each expired artifact is
handled on its own, sequentially, so one failure never aborts the pass:

    PENDING -> BLOB_DELETING -> BLOB_DELETED | BLOB_DELETE_FAILED
            -> META_DELETING -> RECLAIMED | META_DELETE_FAILED

A blob that is already gone counts as deleted. A blob that cannot be
deleted for any other reason keeps its record so the next pass retries
it. A record that cannot be deleted after its blob is gone lingers for
diagnosis. Only failure to start the expired-record query fails a pass.

Concurrent passes (scheduled and operator-triggered) are not excluded
from each other; every step is idempotent per item, so the worst case is
duplicate "not found" outcomes.
"""

import logging
import math
import time
from datetime import datetime, timedelta

from upload_governance.artifacts.blob_store import BlobStore, validate_blob_path
from upload_governance.artifacts.metadata_index import MetadataIndex
from upload_governance.artifacts.models import (
    ArtifactMetadata,
    CleanupOutcome,
    ItemFailure,
    ItemState,
)
from upload_governance.core.clock import Clock, SystemClock, ensure_utc
from upload_governance.core.exceptions import (
    BlobNotFoundError,
    ItemOperationError,
    MetadataNotFoundError,
    MetadataStoreError,
    StoreError,
    StoreUnavailableError,
    ValidationError,
    format_exception,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=1)
MAX_TTL_DAYS = 36500


def ttl_from_days(days: float) -> timedelta:
    """
    Convert a caller-supplied day count into a TTL.

    Raises:
        ValidationError: If days is not finite or outside 0..MAX_TTL_DAYS
    """
    if not math.isfinite(days) or days < 0 or days > MAX_TTL_DAYS:
        raise ValidationError(
            f"TTL must be between 0 and {MAX_TTL_DAYS} days: {days}", field="ttl"
        )
    return timedelta(days=days)


class RetentionCollector:
    """
    Time-to-live garbage collector across a blob store and a metadata index.

    Example:
        collector = RetentionCollector(LocalBlobStore(), SqliteMetadataIndex())
        pending = collector.count_expired()
        outcome = collector.collect()
        print(outcome.deleted, outcome.failed)
    """

    def __init__(
        self,
        blob_store: BlobStore,
        metadata_index: MetadataIndex,
        clock: Clock | None = None,
        default_ttl: timedelta = DEFAULT_TTL,
    ):
        """
        Initialize the collector.

        Args:
            blob_store: Where artifact bytes live
            metadata_index: Where artifact records live
            clock: Source of "now" when callers don't pass one
            default_ttl: TTL used when callers don't pass one
        """
        self._blobs = blob_store
        self._index = metadata_index
        self._clock = clock or SystemClock()
        self.default_ttl = default_ttl

    def _cutoff(self, ttl: timedelta | None, now: datetime | None) -> tuple[timedelta, datetime]:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl < timedelta(0):
            raise ValidationError(f"TTL must not be negative: {ttl}", field="ttl")
        now = ensure_utc(now) if now is not None else self._clock.now()
        try:
            return ttl, now - ttl
        except OverflowError as e:
            raise ValidationError(f"TTL reaches before the earliest date: {ttl}", field="ttl") from e

    def count_expired(self, ttl: timedelta | None = None, now: datetime | None = None) -> int:
        """
        Dry-run count of artifacts the next collect() would attempt.

        Raises:
            StoreUnavailableError: If the metadata index cannot be queried
        """
        _, cutoff = self._cutoff(ttl, now)
        try:
            count = self._index.count_older_than(cutoff)
        except MetadataStoreError as e:
            logger.error(f"Failed to count expired artifacts: {e}")
            raise StoreUnavailableError("Failed to count expired artifacts", cause=e) from e

        logger.info(f"Found {count} artifact(s) created before {cutoff.isoformat()}")
        return count

    def collect(self, ttl: timedelta | None = None, now: datetime | None = None) -> CleanupOutcome:
        """
        Delete every artifact created before ``now - ttl``.

        Args:
            ttl: Age threshold (default: the collector's default TTL)
            now: Evaluation instant (default: the collector's clock)

        Returns:
            CleanupOutcome with deleted/failed counts and per-item errors

        Raises:
            ValidationError: If ttl is negative or reaches before year 1
            StoreUnavailableError: If the expired-record query cannot start
        """
        ttl, cutoff = self._cutoff(ttl, now)
        started = time.monotonic()
        outcome = CleanupOutcome(cutoff=cutoff, ttl_seconds=ttl.total_seconds())

        logger.info(f"Starting cleanup for artifacts created before {cutoff.isoformat()}")

        try:
            records = iter(self._index.query_older_than(cutoff))
            record = next(records, None)
        except MetadataStoreError as e:
            logger.error(f"Cleanup failed, expired-record query unavailable: {e}")
            raise StoreUnavailableError("Cannot query expired artifacts", cause=e) from e

        while record is not None:
            self._collect_one(record, outcome)

            try:
                record = next(records, None)
            except MetadataStoreError as e:
                # Later pages are best effort; report what was done so far
                outcome.interrupted = True
                outcome.interruption = format_exception(e)
                logger.error(f"Cleanup interrupted after {outcome.attempted} item(s): {e}")
                break

        outcome.duration_ms = (time.monotonic() - started) * 1000

        if outcome.deleted > 0:
            logger.info(f"Cleanup successful: {outcome.deleted} artifact(s) deleted")
        elif outcome.failed == 0:
            logger.info("No expired artifacts found to delete")
        if outcome.failed > 0:
            logger.warning(f"{outcome.failed} artifact(s) failed to delete")

        return outcome

    def _collect_one(self, record: ArtifactMetadata, outcome: CleanupOutcome) -> None:
        """Reclaim one record, folding the result into ``outcome``."""
        try:
            self._reclaim(record)
            outcome.deleted += 1
            logger.debug(f"Deleted: {record.path}")
        except ItemOperationError as e:
            outcome.failed += 1
            outcome.errors.append(
                ItemFailure(
                    path=e.path,
                    error=e.cause,
                    artifact_id=e.artifact_id,
                    state=ItemState(e.state) if e.state else ItemState.BLOB_DELETE_FAILED,
                )
            )
            logger.warning(f"Failed to delete {e.path}: {e.cause}")

    def _reclaim(self, record: ArtifactMetadata) -> ItemState:
        """
        Run the blob-then-record state machine for one artifact.

        Any error ends the item in the failed state of the step that was
        running, so one artifact never ends the pass.

        Returns:
            ItemState.RECLAIMED

        Raises:
            ItemOperationError: Carrying the failing terminal state
        """
        path = record.path
        state = ItemState.BLOB_DELETING

        try:
            try:
                self._blobs.delete(path)
            except BlobNotFoundError:
                # Already reclaimed out-of-band; the end state is the same
                logger.debug(f"Blob already gone: {path}")

            state = ItemState.META_DELETING
            self._index.delete(record.artifact_id)
        except MetadataNotFoundError as e:
            raise ItemOperationError(
                path,
                "Metadata record already deleted",
                artifact_id=record.artifact_id,
                state=ItemState.META_DELETE_FAILED.value,
            ) from e
        except Exception as e:
            if not isinstance(e, StoreError):
                logger.exception(f"Unexpected error deleting {path} during {state.value}")
            failed = (
                ItemState.BLOB_DELETE_FAILED
                if state == ItemState.BLOB_DELETING
                else ItemState.META_DELETE_FAILED
            )
            raise ItemOperationError(
                path,
                format_exception(e),
                artifact_id=record.artifact_id,
                state=failed.value,
            ) from e

        return ItemState.RECLAIMED

    def delete_artifact(self, path: str, artifact_id: str | None = None) -> ItemState:
        """
        Explicitly delete one artifact from both stores.

        Args:
            path: Blob locator
            artifact_id: Metadata record id (looked up by path if omitted)

        Returns:
            ItemState.RECLAIMED

        Raises:
            InvalidPathError: If path is empty or invalid
            ItemOperationError: If the artifact could not be fully deleted
        """
        validate_blob_path(path)

        try:
            record = self._index.get(artifact_id) if artifact_id else self._index.find_by_path(path)
        except MetadataStoreError as e:
            raise ItemOperationError(path, format_exception(e), artifact_id=artifact_id) from e

        if record is None and artifact_id:
            raise ItemOperationError(
                path,
                "Metadata record not found",
                artifact_id=artifact_id,
                state=ItemState.META_DELETE_FAILED.value,
            )

        if record is None:
            try:
                self._blobs.delete(path)
            except BlobNotFoundError as e:
                raise ItemOperationError(
                    path, "Artifact not found", state=ItemState.BLOB_DELETE_FAILED.value
                ) from e
            except StoreError as e:
                raise ItemOperationError(
                    path, format_exception(e), state=ItemState.BLOB_DELETE_FAILED.value
                ) from e
            logger.info(f"Deleted orphaned blob {path}")
            return ItemState.RECLAIMED

        state = self._reclaim(record)
        logger.info(f"Deleted artifact {path} ({record.artifact_id})")
        return state
