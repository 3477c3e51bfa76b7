"""State schema definitions for Diff Digest.

This module defines the data model shared by the fetcher, the generation
session manager and the persistence mirror: items (pull-request diffs),
one generation record per item, the pagination cursor, and the read-only
view handed to presentation code.
"""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


INTERRUPTION_MARKER = "Stream was interrupted. You can resume generation."

# Wire field names used by the diff source and the storage snapshots
ITEM_FIELDS = {
    "id": "id",
    "description": "description",
    "prompt_payload": "diff",
    "source_url": "url",
}


class GenerationState(str, Enum):
    """Lifecycle of one item's release-notes generation."""

    IDLE = "idle"
    GENERATING = "generating"
    COMPLETE = "complete"
    INTERRUPTED = "interrupted"
    FAILED = "failed"


@dataclass(frozen=True)
class Item:
    """A pull request diff as returned by the item source."""

    id: str
    description: str
    prompt_payload: str
    source_url: str

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["Item"]:
        """Build an item from a wire record.

        Args:
            raw: Decoded JSON object with id, description, diff and url.

        Returns:
            The item, or None if any field is missing or not a string.
        """
        if not isinstance(raw, dict):
            return None
        values = {}
        for attr, wire_name in ITEM_FIELDS.items():
            value = raw.get(wire_name)
            if not isinstance(value, str):
                return None
            values[attr] = value
        return cls(**values)

    def to_payload(self) -> Dict[str, str]:
        """Serialize to the wire shape accepted by from_payload."""
        return {wire: getattr(self, attr) for attr, wire in ITEM_FIELDS.items()}


@dataclass
class GenerationRecord:
    """Generation progress for one item.

    accumulated_text only grows while the record is generating. A restart
    clears it explicitly; a resume keeps it.
    """

    item_id: str
    state: GenerationState = GenerationState.IDLE
    accumulated_text: str = ""
    visible: bool = False
    interruption_marker: Optional[str] = None

    def append(self, increment: str) -> None:
        """Append one stream increment.

        Raises:
            ValueError: If the record is not generating.
        """
        if self.state is not GenerationState.GENERATING:
            raise ValueError(
                f"Cannot append to record {self.item_id} in state {self.state.value}"
            )
        self.accumulated_text += increment

    @property
    def has_partial_text(self) -> bool:
        """Whether there is non-blank text worth resuming from."""
        return bool(self.accumulated_text.strip())


@dataclass
class PaginationState:
    """Continuation cursor for the item source.

    cursor is the next page to request; None means there are no further
    pages once the initial fetch has happened.
    """

    cursor: Optional[int] = None
    current_page: int = 1
    initial_fetch_done: bool = False

    @property
    def has_more(self) -> bool:
        return not self.initial_fetch_done or self.cursor is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "nextPage": self.cursor,
            "initialFetchDone": self.initial_fetch_done,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "PaginationState":
        """Rebuild pagination state from a stored snapshot.

        Raises:
            ValueError: If the snapshot is malformed.
        """
        if not isinstance(raw, dict):
            raise ValueError("pagination snapshot must be an object")
        current_page = raw.get("currentPage", 1)
        cursor = raw.get("nextPage")
        initial_fetch_done = raw.get("initialFetchDone", False)
        if not isinstance(current_page, int) or isinstance(current_page, bool):
            raise ValueError("currentPage must be an integer")
        if current_page < 1:
            raise ValueError("currentPage must be positive")
        if cursor is not None and (
            not isinstance(cursor, int) or isinstance(cursor, bool) or cursor < 1
        ):
            raise ValueError("nextPage must be a positive integer or null")
        if not isinstance(initial_fetch_done, bool):
            raise ValueError("initialFetchDone must be a boolean")
        return cls(
            cursor=cursor,
            current_page=current_page,
            initial_fetch_done=initial_fetch_done,
        )


@dataclass(frozen=True)
class ItemView:
    """Read-only snapshot of one item for presentation."""

    item: Item
    state: GenerationState = GenerationState.IDLE
    accumulated_text: str = ""
    visible: bool = False
    interruption_marker: Optional[str] = None

    @property
    def can_resume(self) -> bool:
        return self.state is GenerationState.INTERRUPTED

    @classmethod
    def build(cls, item: Item, record: Optional[GenerationRecord]) -> "ItemView":
        if record is None:
            return cls(item=item)
        return cls(
            item=item,
            state=record.state,
            accumulated_text=record.accumulated_text,
            visible=record.visible,
            interruption_marker=record.interruption_marker,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data
