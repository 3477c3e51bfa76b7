"""Application state management for Diff Digest.

This package provides the data model and the in-memory state store
shared by the fetcher, the generation sessions and the persistence mirror.
"""

from diff_digest.state.schema import (
    GenerationRecord,
    GenerationState,
    Item,
    ItemView,
    PaginationState,
)
from diff_digest.state.store import StateChange, StateStore

__all__ = [
    "GenerationRecord",
    "GenerationState",
    "Item",
    "ItemView",
    "PaginationState",
    "StateChange",
    "StateStore",
]
