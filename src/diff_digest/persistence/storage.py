"""Key/value storage backends for the persistence mirror.

A backend stores one serialized snapshot (a JSON string) per logical key.
Backends raise StorageError for any read or write failure and
StorageQuotaExceededError when a write would exceed the configured quota.
"""

import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from diff_digest.utils.exceptions import StorageError, StorageQuotaExceededError
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


class KeyValueStorage(ABC):
    """Abstract string key/value store."""

    def __init__(self, quota_bytes: Optional[int] = None):
        """Initialize the storage.

        Args:
            quota_bytes: Optional cap on the total encoded size of all values.
        """
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key; absent keys are ignored."""

    @abstractmethod
    def keys(self) -> List[str]:
        """List stored keys."""

    @abstractmethod
    def _size_of(self, key: str) -> int:
        """Encoded size of the stored value for key, 0 if absent."""

    def _check_quota(self, key: str, value: str) -> None:
        if self.quota_bytes is None:
            return
        used = sum(self._size_of(k) for k in self.keys() if k != key)
        needed = len(value.encode("utf-8"))
        if used + needed > self.quota_bytes:
            raise StorageQuotaExceededError(
                f"Storage quota exceeded writing {key}",
                key=key,
                details={
                    "quota_bytes": self.quota_bytes,
                    "used_bytes": used,
                    "requested_bytes": needed,
                },
            )


class MemoryStorage(KeyValueStorage):
    """Process-local storage, mainly for tests and --no-persist runs."""

    def __init__(self, quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)

    def _size_of(self, key: str) -> int:
        value = self._data.get(key)
        return len(value.encode("utf-8")) if value is not None else 0


class JsonFileStorage(KeyValueStorage):
    """Stores each key as ``<directory>/<key>.json``.

    Writes go to a temporary file in the same directory and are moved into
    place with os.replace, so a crash never leaves a half-written snapshot.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Union[str, Path], quota_bytes: Optional[int] = None):
        super().__init__(quota_bytes)
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid storage key: {key!r}", key=key)
        return self.directory / f"{key}{self.SUFFIX}"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}", key=key)

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        self._check_quota(key, value)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f".{key}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}", key=key)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", key=key)

    def keys(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            p.name[: -len(self.SUFFIX)]
            for p in self.directory.glob(f"*{self.SUFFIX}")
            if not p.name.startswith(".")
        )

    def _size_of(self, key: str) -> int:
        try:
            return self._path(key).stat().st_size
        except OSError:
            return 0
