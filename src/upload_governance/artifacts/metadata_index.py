"""
Artifact metadata index.

One record per stored blob, queryable by creation time. The SQLite
implementation keeps instants as integer epoch milliseconds so range
queries compare numerically.
"""

import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Iterator

from upload_governance.artifacts.models import ArtifactMetadata
from upload_governance.core.clock import from_epoch_ms, to_epoch_ms
from upload_governance.core.exceptions import MetadataNotFoundError, MetadataStoreError

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


class MetadataIndex(ABC):
    """Insert/query/delete contract for artifact metadata."""

    @abstractmethod
    def insert(self, record: ArtifactMetadata) -> str:
        """Store a record and return its artifact id."""

    @abstractmethod
    def get(self, artifact_id: str) -> ArtifactMetadata | None:
        """Return a record by id, or None."""

    @abstractmethod
    def find_by_path(self, path: str) -> ArtifactMetadata | None:
        """Return the record pointing at a blob path, or None."""

    @abstractmethod
    def query_older_than(self, instant: datetime) -> Iterator[ArtifactMetadata]:
        """
        Lazily yield every record with ``created_at < instant``.

        The sequence is finite and paged; it is not restartable, so call
        again for a fresh pass.
        """

    @abstractmethod
    def count_older_than(self, instant: datetime) -> int:
        """Count records with ``created_at < instant``."""

    @abstractmethod
    def delete(self, artifact_id: str) -> None:
        """
        Remove a record.

        Raises:
            MetadataNotFoundError: No record has this id
            MetadataStoreError: Any other failure
        """


class SqliteMetadataIndex(MetadataIndex):
    """
    SQLite-backed metadata index.

    Thread-safe: each thread gets its own connection and writes are
    serialised with a re-entrant lock.
    """

    def __init__(self, db_path: Path | None = None, page_size: int = DEFAULT_PAGE_SIZE):
        """
        Initialize the index.

        Args:
            db_path: SQLite file (default: var/metadata.db)
            page_size: Rows fetched per page by query_older_than
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        self._db_path = db_path or Path("var/metadata.db")
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._page_size = page_size
        self._lock = threading.RLock()
        self._connections: dict[int, sqlite3.Connection] = {}

        self._init_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get this thread's SQLite connection, opening it on first use."""
        thread_id = threading.get_ident()
        with self._lock:
            conn = self._connections.get(thread_id)
            if conn is None:
                conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA journal_mode = WAL")
                conn.execute("PRAGMA synchronous = NORMAL")
                self._connections[thread_id] = conn
            return conn

    def _init_schema(self) -> None:
        """Initialize the SQLite schema."""
        try:
            conn = self._get_connection()
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS artifact_metadata (
                    artifact_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    path TEXT NOT NULL UNIQUE,
                    created_at_ms INTEGER NOT NULL,
                    size_bytes INTEGER NOT NULL DEFAULT 0,
                    display_name TEXT NOT NULL DEFAULT '',
                    content_type TEXT
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_created_at ON artifact_metadata(created_at_ms, artifact_id)"
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_owner_id ON artifact_metadata(owner_id)")
            conn.commit()
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Cannot initialize index: {e}", operation="init") from e

    @staticmethod
    def _row_to_metadata(row: sqlite3.Row) -> ArtifactMetadata:
        return ArtifactMetadata(
            artifact_id=row["artifact_id"],
            owner_id=row["owner_id"],
            path=row["path"],
            created_at=from_epoch_ms(row["created_at_ms"]),
            size_bytes=row["size_bytes"],
            display_name=row["display_name"],
            content_type=row["content_type"],
        )

    def insert(self, record: ArtifactMetadata) -> str:
        artifact_id = record.artifact_id or str(uuid.uuid4())
        with self._lock:
            try:
                conn = self._get_connection()
                conn.execute(
                    """
                    INSERT INTO artifact_metadata (
                        artifact_id, owner_id, path, created_at_ms,
                        size_bytes, display_name, content_type
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        artifact_id,
                        record.owner_id,
                        record.path,
                        to_epoch_ms(record.created_at),
                        record.size_bytes,
                        record.display_name,
                        record.content_type,
                    ),
                )
                conn.commit()
            except sqlite3.Error as e:
                raise MetadataStoreError(
                    f"Insert failed: {e}", operation="insert", key=record.path
                ) from e

        return artifact_id

    def get(self, artifact_id: str) -> ArtifactMetadata | None:
        try:
            row = self._get_connection().execute(
                "SELECT * FROM artifact_metadata WHERE artifact_id = ?", (artifact_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Lookup failed: {e}", operation="get", key=artifact_id) from e
        return self._row_to_metadata(row) if row else None

    def find_by_path(self, path: str) -> ArtifactMetadata | None:
        try:
            row = self._get_connection().execute(
                "SELECT * FROM artifact_metadata WHERE path = ?", (path,)
            ).fetchone()
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Lookup failed: {e}", operation="find_by_path", key=path) from e
        return self._row_to_metadata(row) if row else None

    def query_older_than(self, instant: datetime) -> Iterator[ArtifactMetadata]:
        cutoff_ms = to_epoch_ms(instant)
        last_key: tuple[int, str] | None = None

        # Keyset pagination on (created_at_ms, artifact_id) stays correct
        # while earlier rows are deleted mid-iteration.
        while True:
            try:
                conn = self._get_connection()
                if last_key is None:
                    rows = conn.execute(
                        """
                        SELECT * FROM artifact_metadata
                        WHERE created_at_ms < ?
                        ORDER BY created_at_ms ASC, artifact_id ASC
                        LIMIT ?
                        """,
                        (cutoff_ms, self._page_size),
                    ).fetchall()
                else:
                    rows = conn.execute(
                        """
                        SELECT * FROM artifact_metadata
                        WHERE created_at_ms < ?
                            AND (created_at_ms > ? OR (created_at_ms = ? AND artifact_id > ?))
                        ORDER BY created_at_ms ASC, artifact_id ASC
                        LIMIT ?
                        """,
                        (cutoff_ms, last_key[0], last_key[0], last_key[1], self._page_size),
                    ).fetchall()
            except sqlite3.Error as e:
                raise MetadataStoreError(f"Query failed: {e}", operation="query_older_than") from e

            for row in rows:
                yield self._row_to_metadata(row)

            if len(rows) < self._page_size:
                return
            last_key = (rows[-1]["created_at_ms"], rows[-1]["artifact_id"])

    def count_older_than(self, instant: datetime) -> int:
        try:
            row = self._get_connection().execute(
                "SELECT COUNT(*) AS n FROM artifact_metadata WHERE created_at_ms < ?",
                (to_epoch_ms(instant),),
            ).fetchone()
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Count failed: {e}", operation="count_older_than") from e
        return int(row["n"]) if row else 0

    def count(self) -> int:
        """Total number of records."""
        try:
            row = self._get_connection().execute("SELECT COUNT(*) AS n FROM artifact_metadata").fetchone()
        except sqlite3.Error as e:
            raise MetadataStoreError(f"Count failed: {e}", operation="count") from e
        return int(row["n"]) if row else 0

    def delete(self, artifact_id: str) -> None:
        with self._lock:
            try:
                conn = self._get_connection()
                cursor = conn.execute(
                    "DELETE FROM artifact_metadata WHERE artifact_id = ?", (artifact_id,)
                )
                conn.commit()
            except sqlite3.Error as e:
                raise MetadataStoreError(f"Delete failed: {e}", operation="delete", key=artifact_id) from e

        if cursor.rowcount == 0:
            raise MetadataNotFoundError(key=artifact_id)

    def close(self) -> None:
        """Close the connections opened by every thread."""
        with self._lock:
            for conn in self._connections.values():
                conn.close()
            self._connections.clear()

    @property
    def open_connections(self) -> int:
        """Number of connections currently open."""
        return len(self._connections)
