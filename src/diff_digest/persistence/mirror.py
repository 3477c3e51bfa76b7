"""Durable mirror of the client state.

The mirror writes every committed store change through to a key/value
storage backend and restores it on startup. Hydration is an explicit,
one-shot gate: nothing is written before ``load()`` has run (or
``skip_hydration()`` was called), so a freshly started client can never
overwrite restored data with empty defaults.

Writes are synchronous and happen on the event loop thread. Each save
rewrites a whole key, so a streamed increment costs one rewrite of the
notes snapshot; keys whose content did not change are skipped.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from diff_digest.persistence.storage import KeyValueStorage
from diff_digest.state.schema import (
    INTERRUPTION_MARKER,
    GenerationRecord,
    GenerationState,
    Item,
    PaginationState,
)
from diff_digest.state.store import StateChange, StateStore
from diff_digest.utils.exceptions import StateError, StorageError
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


# Logical storage keys
STORAGE_KEYS = {
    "items": "diff-digest-diffs",
    "notes": "diff-digest-notes",
    "visible": "diff-digest-expanded",
    "pagination": "diff-digest-pagination",
    "interrupted": "diff-digest-interrupted-streams",
    "states": "diff-digest-generation-states",
}

RECORD_KEYS = ("notes", "visible", "interrupted", "states")


class HydrationState(Enum):
    """Whether restored state is in place and writes are allowed."""

    NOT_HYDRATED = "not_hydrated"
    HYDRATED = "hydrated"
    SKIPPED = "skipped"


@dataclass
class PersistedState:
    """Everything the mirror can restore."""

    items: List[Item] = field(default_factory=list)
    records: Dict[str, GenerationRecord] = field(default_factory=dict)
    pagination: PaginationState = field(default_factory=PaginationState)

    @property
    def is_empty(self) -> bool:
        return not self.items and not self.records and not self.pagination.initial_fetch_done


class PersistenceMirror:
    """Write-through persistence for items, records and pagination."""

    def __init__(self, storage: KeyValueStorage):
        """Initialize the mirror.

        Args:
            storage: Backend holding one JSON snapshot per storage key.
        """
        self.storage = storage
        self._hydration = HydrationState.NOT_HYDRATED
        self.degraded = False
        self.failed_writes = 0
        self._written: Dict[str, str] = {}

    @property
    def hydration_state(self) -> HydrationState:
        return self._hydration

    @property
    def writes_enabled(self) -> bool:
        return self._hydration is not HydrationState.NOT_HYDRATED

    # ===== Loading =====

    def load(self) -> PersistedState:
        """Restore the stored state.

        Each key falls back to its default independently when it is absent,
        unreadable or malformed. Loading always completes the hydration gate.

        Returns:
            The restored state.
        """
        items = self._load_items()
        records = self._load_records({item.id for item in items})
        pagination = self._load_pagination()

        self._hydration = HydrationState.HYDRATED
        logger.info(
            f"Hydrated {len(items)} items, {len(records)} generation records, "
            f"page {pagination.current_page} (next: {pagination.cursor})"
        )
        return PersistedState(items=items, records=records, pagination=pagination)

    def skip_hydration(self) -> None:
        """Open the write gate without restoring anything."""
        if self._hydration is HydrationState.NOT_HYDRATED:
            logger.info("Hydration skipped; starting from empty state")
            self._hydration = HydrationState.SKIPPED

    def _read(self, name: str, expected: type) -> Optional[Any]:
        key = STORAGE_KEYS[name]
        try:
            raw = self.storage.get(key)
        except StorageError as e:
            logger.warning(f"Failed to load {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed snapshot in {key}: {e}")
            return None
        if not isinstance(value, expected):
            logger.warning(
                f"Ignoring snapshot in {key}: expected {expected.__name__}, "
                f"got {type(value).__name__}"
            )
            return None
        return value

    def _load_items(self) -> List[Item]:
        raw_items = self._read("items", list) or []
        items: List[Item] = []
        seen = set()
        for raw in raw_items:
            item = Item.from_payload(raw)
            if item is None or item.id in seen:
                continue
            seen.add(item.id)
            items.append(item)
        if len(items) != len(raw_items):
            logger.warning(
                f"Dropped {len(raw_items) - len(items)} invalid or duplicate stored items"
            )
        return items

    def _load_records(self, item_ids: set) -> Dict[str, GenerationRecord]:
        notes = self._string_map(self._read("notes", dict))
        visible = {
            k: v for k, v in (self._read("visible", dict) or {}).items() if isinstance(v, bool)
        }
        interrupted = self._string_map(self._read("interrupted", dict))
        states = self._string_map(self._read("states", dict))

        records: Dict[str, GenerationRecord] = {}
        for item_id in set(notes) | set(visible) | set(interrupted) | set(states):
            if item_id not in item_ids:
                continue
            state = self._restore_state(
                states.get(item_id), notes.get(item_id), interrupted.get(item_id)
            )
            records[item_id] = GenerationRecord(
                item_id=item_id,
                state=state,
                accumulated_text=notes.get(item_id, ""),
                visible=visible.get(item_id, False),
                interruption_marker=(
                    interrupted.get(item_id, INTERRUPTION_MARKER)
                    if state is GenerationState.INTERRUPTED
                    else None
                ),
            )
        return records

    @staticmethod
    def _string_map(value: Optional[dict]) -> Dict[str, str]:
        if not value:
            return {}
        return {k: v for k, v in value.items() if isinstance(v, str)}

    @staticmethod
    def _restore_state(
        stored: Optional[str], text: Optional[str], marker: Optional[str]
    ) -> GenerationState:
        if stored is not None:
            try:
                return GenerationState(stored)
            except ValueError:
                logger.warning(f"Unknown stored generation state: {stored}")
        # Snapshots without a state entry: infer from the other keys
        if marker:
            return GenerationState.INTERRUPTED
        if text:
            return GenerationState.COMPLETE
        return GenerationState.IDLE

    def _load_pagination(self) -> PaginationState:
        raw = self._read("pagination", dict)
        if raw is None:
            return PaginationState()
        try:
            return PaginationState.from_dict(raw)
        except ValueError as e:
            logger.warning(f"Ignoring malformed pagination snapshot: {e}")
            return PaginationState()

    # ===== Saving =====

    def save(
        self,
        items: Optional[Iterable[Item]] = None,
        records: Optional[Dict[str, GenerationRecord]] = None,
        pagination: Optional[PaginationState] = None,
    ) -> bool:
        """Write the given parts of the state.

        Storage failures are reported and remembered in ``degraded`` but
        never raised.

        Returns:
            True if every requested write succeeded.

        Raises:
            StateError: If called before hydration completed or was skipped.
        """
        if not self.writes_enabled:
            raise StateError(
                "Refusing to persist state before hydration",
                details={"hydration_state": self._hydration.value},
            )

        snapshots: Dict[str, Any] = {}
        if items is not None:
            snapshots["items"] = [item.to_payload() for item in items]
        if records is not None:
            snapshots["notes"] = {k: r.accumulated_text for k, r in records.items()}
            snapshots["visible"] = {k: r.visible for k, r in records.items()}
            snapshots["interrupted"] = {
                k: r.interruption_marker
                for k, r in records.items()
                if r.interruption_marker
            }
            snapshots["states"] = {k: r.state.value for k, r in records.items()}
        if pagination is not None:
            snapshots["pagination"] = pagination.to_dict()

        ok = True
        for name, value in snapshots.items():
            ok = self._write(STORAGE_KEYS[name], value) and ok
        return ok

    def _write(self, key: str, value: Any) -> bool:
        serialized = json.dumps(value, ensure_ascii=False)
        if self._written.get(key) == serialized:
            return True
        try:
            self.storage.set(key, serialized)
            self._written[key] = serialized
            return True
        except StorageError as e:
            self._written.pop(key, None)
            self.failed_writes += 1
            if not self.degraded:
                logger.warning(
                    f"Failed to persist {key}; changes will not be persisted this session: {e}"
                )
            else:
                logger.debug(f"Failed to persist {key}: {e}")
            self.degraded = True
            return False

    def clear(self) -> None:
        """Remove every stored key (full reset)."""
        self._written.clear()
        for key in STORAGE_KEYS.values():
            try:
                self.storage.delete(key)
            except StorageError as e:
                logger.warning(f"Failed to clear {key}: {e}")

    # ===== Write-through =====

    def attach(self, store: StateStore) -> Callable[[], None]:
        """Write every committed store change through to storage.

        Returns:
            Callable that detaches the mirror.
        """

        def on_change(change: StateChange, item_id: Optional[str]) -> None:
            if not self.writes_enabled:
                logger.debug(f"Ignoring {change.value} change before hydration")
                return
            if change is StateChange.ITEMS:
                self.save(items=store.items)
            elif change is StateChange.RECORDS:
                self.save(records=store.records)
            elif change is StateChange.PAGINATION:
                self.save(pagination=store.pagination)
            elif change is StateChange.RESET:
                self.clear()

        return store.subscribe(on_change)
