"""
Blob storage backend.

Binary objects keyed by a relative path such as
``uploads/{owner_id}/{epoch_ms}_{name}``. The governance core only needs
point operations (put/get/delete by path); failures are reported with the
NotFound / Unauthorized / Other split the retention collector relies on.
"""

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath

from upload_governance.core.exceptions import (
    BlobNotFoundError,
    BlobStoreError,
    BlobUnauthorizedError,
    InvalidPathError,
)

logger = logging.getLogger(__name__)


def validate_blob_path(path: str) -> str:
    """
    Check that a blob locator is a non-empty relative path.

    Raises:
        InvalidPathError: If the path is empty, absolute or escapes the root
    """
    if not path or not path.strip():
        raise InvalidPathError()

    posix = PurePosixPath(path)
    if posix.is_absolute() or ".." in posix.parts or "\\" in path:
        raise InvalidPathError(f"Invalid artifact path: {path}", path=path)
    return path


class BlobStore(ABC):
    """Point-operation contract for binary object storage."""

    @abstractmethod
    def put(self, path: str, data: bytes) -> None:
        """Store ``data`` at ``path``, replacing any existing object."""

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Return the object at ``path``."""

    @abstractmethod
    def exists(self, path: str) -> bool:
        """Return True if an object exists at ``path``."""

    @abstractmethod
    def delete(self, path: str) -> None:
        """
        Remove the object at ``path``.

        Raises:
            BlobNotFoundError: Nothing is stored at the path
            BlobUnauthorizedError: The store refused the deletion
            BlobStoreError: Any other failure
        """


class LocalBlobStore(BlobStore):
    """
    Filesystem blob store.

    Manages {root}/ directory structure:
    - {root}/uploads/{owner_id}/{epoch_ms}_{display_name}

    Writes go through a temp file and an atomic rename so a reader never
    sees a partially written object.
    """

    def __init__(self, root: Path | None = None):
        """
        Initialize blob storage.

        Args:
            root: Base directory for blobs (default: var/blobs/)
        """
        self._root = root or Path("var/blobs")
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        return self._root / PurePosixPath(validate_blob_path(path))

    def put(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        with self._lock:
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp_")
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp_name, target)
            except PermissionError as e:
                raise BlobUnauthorizedError(f"Permission denied: {e}", key=path, operation="put") from e
            except OSError as e:
                raise BlobStoreError(f"Write failed: {e}", key=path, operation="put") from e

        logger.debug(f"Stored blob {path} ({len(data)} bytes)")

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise BlobNotFoundError(key=path, operation="get") from e
        except PermissionError as e:
            raise BlobUnauthorizedError(key=path, operation="get") from e
        except OSError as e:
            raise BlobStoreError(f"Read failed: {e}", key=path, operation="get") from e

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        with self._lock:
            try:
                target.unlink()
            except FileNotFoundError as e:
                raise BlobNotFoundError(key=path, operation="delete") from e
            except PermissionError as e:
                raise BlobUnauthorizedError(key=path, operation="delete") from e
            except OSError as e:
                raise BlobStoreError(f"Delete failed: {e}", key=path, operation="delete") from e

            self._prune_empty_dirs(target.parent)

    def _prune_empty_dirs(self, directory: Path) -> None:
        """Remove now-empty owner directories below the root."""
        root = self._root.resolve()
        current = directory
        while current.resolve() != root and root in current.resolve().parents:
            try:
                current.rmdir()
            except OSError:
                break
            current = current.parent
