"""Pytest configuration and fixtures."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator, Iterator

import pytest

from upload_governance.artifacts import (
    ArtifactMetadata,
    LocalBlobStore,
    RetentionCollector,
    SqliteMetadataIndex,
)
from upload_governance.core import (
    BlobStoreError,
    BlobUnauthorizedError,
    ManualClock,
    MetadataStoreError,
)
from upload_governance.quota import AdmissionController, InMemoryQuotaStore

T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Failure-injecting stores
# =============================================================================


class FaultyBlobStore(LocalBlobStore):
    """Local blob store that refuses deletes for selected paths."""

    def __init__(self, root: Path):
        super().__init__(root)
        self.unauthorized: set[str] = set()
        self.broken: set[str] = set()
        self.deleted: list[str] = []

    def delete(self, path: str) -> None:
        if path in self.unauthorized:
            raise BlobUnauthorizedError(key=path, operation="delete")
        if path in self.broken:
            raise BlobStoreError("Delete failed: I/O error", key=path, operation="delete")
        super().delete(path)
        self.deleted.append(path)


class FaultyMetadataIndex(SqliteMetadataIndex):
    """SQLite index with switchable query and delete failures."""

    def __init__(self, db_path: Path, page_size: int = 100):
        super().__init__(db_path, page_size=page_size)
        self.fail_query = False
        self.fail_count = False
        self.fail_after: int | None = None
        self.fail_delete: set[str] = set()

    def query_older_than(self, instant: datetime) -> Iterator[ArtifactMetadata]:
        if self.fail_query:
            raise MetadataStoreError("Query failed: database is locked", operation="query_older_than")

        for yielded, record in enumerate(super().query_older_than(instant)):
            if self.fail_after is not None and yielded >= self.fail_after:
                raise MetadataStoreError("Query failed: connection lost", operation="query_older_than")
            yield record

    def count_older_than(self, instant: datetime) -> int:
        if self.fail_count:
            raise MetadataStoreError("Count failed: database is locked", operation="count_older_than")
        return super().count_older_than(instant)

    def delete(self, artifact_id: str) -> None:
        if artifact_id in self.fail_delete:
            raise MetadataStoreError("Delete failed: disk I/O error", operation="delete", key=artifact_id)
        super().delete(artifact_id)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clock() -> ManualClock:
    """Provide a clock pinned to a fixed instant."""
    return ManualClock(T0)


@pytest.fixture
def controller(clock: ManualClock) -> AdmissionController:
    """Provide an admission controller with default limits and in-memory history."""
    return AdmissionController(InMemoryQuotaStore(), clock=clock)


@pytest.fixture
def blob_store(temp_dir: Path) -> FaultyBlobStore:
    """Provide a filesystem blob store under the temp directory."""
    return FaultyBlobStore(temp_dir / "blobs")


@pytest.fixture
def metadata_index(temp_dir: Path) -> Generator[FaultyMetadataIndex, None, None]:
    """Provide a SQLite metadata index with a small page size."""
    index = FaultyMetadataIndex(temp_dir / "index.db", page_size=2)
    yield index
    index.close()


@pytest.fixture
def collector(
    blob_store: FaultyBlobStore,
    metadata_index: FaultyMetadataIndex,
    clock: ManualClock,
) -> RetentionCollector:
    """Provide a retention collector over the temp stores."""
    return RetentionCollector(blob_store, metadata_index, clock=clock)


@pytest.fixture
def seed_artifact(blob_store: FaultyBlobStore, metadata_index: FaultyMetadataIndex, clock: ManualClock):
    """Return a helper that stores a blob and its record at a given age."""

    def _seed(name: str, age: timedelta, owner: str = "alice") -> ArtifactMetadata:
        created_at = clock.now() - age
        path = f"uploads/{owner}/{int(created_at.timestamp() * 1000)}_{name}"
        blob_store.put(path, f"content of {name}".encode())
        record = ArtifactMetadata(
            owner_id=owner,
            path=path,
            created_at=created_at,
            size_bytes=len(f"content of {name}"),
            display_name=name,
        )
        artifact_id = metadata_index.insert(record)
        return record.model_copy(update={"artifact_id": artifact_id})

    return _seed
