"""
Quota history storage.

Keeps the ordered list of admission instants for each principal on the
local device. Nothing here is shared between devices, so the quota is a
per-device guarantee rather than a per-account one.
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from upload_governance.core.clock import ensure_utc, from_epoch_ms, to_epoch_ms
from upload_governance.core.exceptions import QuotaStoreError

logger = logging.getLogger(__name__)


class QuotaStore(ABC):
    """Load/save contract for per-principal admission history."""

    @abstractmethod
    def load(self, principal_id: str) -> list[datetime]:
        """Return the stored instants for a principal, oldest first."""

    @abstractmethod
    def save(self, principal_id: str, timestamps: list[datetime]) -> None:
        """Replace the stored instants for a principal."""


class InMemoryQuotaStore(QuotaStore):
    """Process-local store, for tests and single-session use."""

    def __init__(self) -> None:
        self._history: dict[str, list[datetime]] = {}
        self._lock = threading.Lock()

    def load(self, principal_id: str) -> list[datetime]:
        with self._lock:
            return list(self._history.get(principal_id, []))

    def save(self, principal_id: str, timestamps: list[datetime]) -> None:
        with self._lock:
            self._history[principal_id] = sorted(ensure_utc(ts) for ts in timestamps)

    def principals(self) -> list[str]:
        with self._lock:
            return sorted(self._history)


class JsonFileQuotaStore(QuotaStore):
    """
    Device-local JSON store.

    Manages one file per principal:
    - {quota_dir}/upload_timestamps_{sha256(principal)[:32]}.json

    Each file holds the principal id and its timestamps as epoch
    milliseconds. Unreadable or malformed files are treated as empty
    history rather than failing the caller.
    """

    FILE_PREFIX = "upload_timestamps_"

    def __init__(self, quota_dir: Path | None = None):
        """
        Initialize the file store.

        Args:
            quota_dir: Directory for history files (default: var/quota/)
        """
        self._quota_dir = quota_dir or Path("var/quota")
        self._quota_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _file_for(self, principal_id: str) -> Path:
        digest = hashlib.sha256(principal_id.encode("utf-8")).hexdigest()[:32]
        return self._quota_dir / f"{self.FILE_PREFIX}{digest}.json"

    def load(self, principal_id: str) -> list[datetime]:
        path = self._file_for(principal_id)
        if not path.exists():
            return []

        try:
            data = json.loads(path.read_text())
            raw = data.get("timestamps", []) if isinstance(data, dict) else data
            if not isinstance(raw, list):
                return []
            return sorted(from_epoch_ms(value) for value in raw if isinstance(value, (int, float)))
        except (OSError, json.JSONDecodeError, ValueError, OverflowError) as e:
            logger.warning(f"Ignoring unreadable quota history {path.name}: {e}")
            return []

    def save(self, principal_id: str, timestamps: list[datetime]) -> None:
        path = self._file_for(principal_id)
        payload = {
            "principal_id": principal_id,
            "timestamps": sorted(to_epoch_ms(ts) for ts in timestamps),
        }

        with self._lock:
            try:
                # Write to a sibling temp file then swap it in
                fd, tmp_name = tempfile.mkstemp(dir=self._quota_dir, prefix=".tmp_", suffix=".json")
                with os.fdopen(fd, "w") as f:
                    json.dump(payload, f)
                os.replace(tmp_name, path)
            except OSError as e:
                raise QuotaStoreError(
                    f"Failed to save quota history: {e}",
                    operation="save",
                    key=principal_id,
                ) from e
