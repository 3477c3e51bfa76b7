"""Durable persistence for Diff Digest client state."""

from diff_digest.persistence.storage import (
    JsonFileStorage,
    KeyValueStorage,
    MemoryStorage,
)
from diff_digest.persistence.mirror import (
    STORAGE_KEYS,
    HydrationState,
    PersistedState,
    PersistenceMirror,
)

__all__ = [
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "STORAGE_KEYS",
    "HydrationState",
    "PersistedState",
    "PersistenceMirror",
]
