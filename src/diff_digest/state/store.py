"""In-memory state store for Diff Digest.

The store is the single shared mutable resource of a client. Ownership
is split by field: the pagination fetcher owns the item sequence and the
cursor, the generation session manager (together with the stream
accumulator) owns each item's GenerationRecord. Every committed change is
announced to subscribers, which is how the persistence mirror writes
through and how presentation code follows live streams.
"""

from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from diff_digest.state.schema import (
    GenerationRecord,
    GenerationState,
    Item,
    ItemView,
    PaginationState,
)
from diff_digest.utils.exceptions import StateError
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


class StateChange(Enum):
    """Which part of the store a notification is about."""

    ITEMS = "items"
    RECORDS = "records"
    PAGINATION = "pagination"
    RESET = "reset"


StateListener = Callable[[StateChange, Optional[str]], None]


class StateStore:
    """Explicit state container with change notification."""

    def __init__(self):
        self._items: List[Item] = []
        self._index: Dict[str, Item] = {}
        self._records: Dict[str, GenerationRecord] = {}
        self._pagination = PaginationState()
        self._listeners: List[StateListener] = []

    # ===== Subscription =====

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a change listener.

        Args:
            listener: Called synchronously with the change kind and, for
                record changes, the item id.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, change: StateChange, item_id: Optional[str] = None) -> None:
        """Announce a committed change to every listener."""
        for listener in list(self._listeners):
            try:
                listener(change, item_id)
            except Exception as e:
                logger.error(
                    f"State listener failed on {change.value} change: {e}",
                    exc_info=True,
                )

    # ===== Items =====

    @property
    def items(self) -> Tuple[Item, ...]:
        return tuple(self._items)

    def has_item(self, item_id: str) -> bool:
        return item_id in self._index

    def get_item(self, item_id: str) -> Item:
        """Look up a held item.

        Raises:
            StateError: If no item with that id is held.
        """
        try:
            return self._index[item_id]
        except KeyError:
            raise StateError(f"Unknown item: {item_id}", details={"item_id": item_id})

    def replace_items(self, items: Iterable[Item]) -> int:
        """Replace the held sequence, keeping the first occurrence of each id.

        Returns:
            Number of items held afterwards.
        """
        self._items = []
        self._index = {}
        self._add_unique(items)
        self.notify(StateChange.ITEMS)
        return len(self._items)

    def append_items(self, items: Iterable[Item]) -> int:
        """Append items whose ids are not held yet.

        Returns:
            Number of items actually added.
        """
        added = self._add_unique(items)
        if added:
            self.notify(StateChange.ITEMS)
        return added

    def _add_unique(self, items: Iterable[Item]) -> int:
        added = 0
        for item in items:
            if item.id in self._index:
                logger.debug(f"Skipping duplicate item {item.id}")
                continue
            self._items.append(item)
            self._index[item.id] = item
            added += 1
        return added

    # ===== Generation records =====

    @property
    def records(self) -> Dict[str, GenerationRecord]:
        return dict(self._records)

    def get_record(self, item_id: str) -> Optional[GenerationRecord]:
        return self._records.get(item_id)

    def ensure_record(self, item_id: str) -> GenerationRecord:
        """Get the item's record, creating an idle one on first use.

        Raises:
            StateError: If the item is not held.
        """
        if item_id not in self._index:
            raise StateError(
                f"Cannot create a generation record for unknown item {item_id}",
                details={"item_id": item_id},
            )
        record = self._records.get(item_id)
        if record is None:
            record = GenerationRecord(item_id=item_id)
            self._records[item_id] = record
        return record

    def commit_record(self, record: GenerationRecord) -> None:
        """Announce that a record was mutated in place."""
        self.notify(StateChange.RECORDS, record.item_id)

    def drop_record(self, item_id: str) -> bool:
        if self._records.pop(item_id, None) is None:
            return False
        self.notify(StateChange.RECORDS, item_id)
        return True

    def prune_orphan_records(self) -> List[str]:
        """Drop records whose item is no longer held.

        Records that are still generating are left for their session to
        clean up when it finishes.

        Returns:
            Ids of the dropped records.
        """
        orphans = [
            item_id
            for item_id, record in self._records.items()
            if item_id not in self._index
            and record.state is not GenerationState.GENERATING
        ]
        for item_id in orphans:
            del self._records[item_id]
        if orphans:
            logger.info(f"Pruned {len(orphans)} generation records without items")
            self.notify(StateChange.RECORDS)
        return orphans

    # ===== Pagination =====

    @property
    def pagination(self) -> PaginationState:
        return PaginationState(
            cursor=self._pagination.cursor,
            current_page=self._pagination.current_page,
            initial_fetch_done=self._pagination.initial_fetch_done,
        )

    def set_pagination(self, pagination: PaginationState) -> None:
        self._pagination = pagination
        self.notify(StateChange.PAGINATION)

    # ===== Whole-store operations =====

    def hydrate(
        self,
        items: Iterable[Item],
        records: Dict[str, GenerationRecord],
        pagination: PaginationState,
    ) -> None:
        """Install restored state without announcing it.

        Records without a matching item are discarded.
        """
        self._items = []
        self._index = {}
        self._add_unique(items)
        self._records = {
            item_id: record
            for item_id, record in records.items()
            if item_id in self._index
        }
        dropped = len(records) - len(self._records)
        if dropped:
            logger.warning(f"Discarded {dropped} restored records without items")
        self._pagination = pagination

    def reset(self) -> None:
        """Forget everything (full reset)."""
        self._items = []
        self._index = {}
        self._records = {}
        self._pagination = PaginationState()
        self.notify(StateChange.RESET)

    def view(self, item_id: str) -> ItemView:
        """Build the read-only view of one item.

        Raises:
            StateError: If the item is not held.
        """
        return ItemView.build(self.get_item(item_id), self._records.get(item_id))

    def views(self) -> List[ItemView]:
        return [ItemView.build(item, self._records.get(item.id)) for item in self._items]
