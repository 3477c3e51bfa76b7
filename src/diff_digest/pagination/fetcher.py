"""Cursor-paginated item fetching.

The fetcher owns the item sequence and the pagination cursor in the
state store. A fetch only touches the store after it fully succeeded, so
a failed fetch can be retried safely.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Optional

from diff_digest.pagination.sources import ItemSource
from diff_digest.state.schema import Item, PaginationState
from diff_digest.state.store import StateStore
from diff_digest.utils.exceptions import (
    InvalidInputError,
    InvalidResponseError,
    StateError,
    TimeoutError,
)
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PageResult:
    """Outcome of one successful page fetch."""

    page: int
    items: List[Item] = field(default_factory=list)
    next_cursor: Optional[int] = None
    current_page: int = 1
    added: int = 0
    dropped: int = 0


def _optional_page_number(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return None
    return value


class PaginationFetcher:
    """Fetches pages from an item source into the state store."""

    def __init__(
        self,
        source: ItemSource,
        store: StateStore,
        per_page: int = 10,
        timeout_seconds: float = 30.0,
    ):
        """Initialize the fetcher.

        Args:
            source: Where pages come from.
            store: State store receiving items and the cursor.
            per_page: Requested page size.
            timeout_seconds: Budget for a whole fetch, including the body.
        """
        self.source = source
        self.store = store
        self.per_page = per_page
        self.timeout_seconds = timeout_seconds
        self._loading = False

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def has_more(self) -> bool:
        return self.store.pagination.has_more

    async def fetch_page(self, page: int) -> PageResult:
        """Fetch one page and merge it into the store.

        Page 1 replaces the held items; later pages are appended with
        duplicates (by id) dropped, keeping the first occurrence.

        Args:
            page: Positive page number.

        Returns:
            What the page contributed.

        Raises:
            InvalidInputError: If page is not a positive integer.
            StateError: If another fetch is in flight.
            TimeoutError: If the whole fetch exceeded its budget.
            NetworkError, ServerError, RateLimitedError, InvalidResponseError:
                As raised by the source or found in the payload.
        """
        if isinstance(page, bool) or not isinstance(page, int) or page < 1:
            raise InvalidInputError(
                "Page must be a positive integer", field="page", value=page
            )
        if self._loading:
            raise StateError("A page fetch is already in progress", details={"page": page})

        self._loading = True
        try:
            try:
                async with asyncio.timeout(self.timeout_seconds):
                    payload = await self.source.fetch(page, self.per_page)
            except asyncio.TimeoutError:
                raise TimeoutError(
                    "Request timed out. Please check your connection and try again.",
                    operation="fetch_page",
                    timeout_seconds=self.timeout_seconds,
                    details={"page": page},
                )
            result = self._parse(page, payload)
        finally:
            self._loading = False

        self._apply(result)
        return result

    async def fetch_first_page(self) -> PageResult:
        """Refetch from page 1, rebuilding the item sequence."""
        return await self.fetch_page(1)

    async def fetch_next_page(self) -> Optional[PageResult]:
        """Follow the cursor.

        Returns:
            The page result, or None when there are no further pages.
        """
        pagination = self.store.pagination
        if not pagination.initial_fetch_done:
            return await self.fetch_page(1)
        if pagination.cursor is None:
            logger.info("No further pages to fetch")
            return None
        return await self.fetch_page(pagination.cursor)

    def _parse(self, page: int, payload: Any) -> PageResult:
        if not isinstance(payload, dict):
            raise InvalidResponseError("Invalid response data structure.")
        raw_items = payload.get("diffs")
        if not isinstance(raw_items, list):
            raise InvalidResponseError("Invalid diffs data. Expected an array.")

        items = []
        for raw in raw_items:
            item = Item.from_payload(raw)
            if item is not None:
                items.append(item)
        dropped = len(raw_items) - len(items)
        if dropped:
            logger.warning(f"Filtered out {dropped} invalid diff items on page {page}")

        return PageResult(
            page=page,
            items=items,
            next_cursor=_optional_page_number(payload.get("nextPage")),
            current_page=_optional_page_number(payload.get("currentPage")) or page,
            dropped=dropped,
        )

    def _apply(self, result: PageResult) -> None:
        if result.page == 1:
            result.added = self.store.replace_items(result.items)
            self.store.prune_orphan_records()
        else:
            result.added = self.store.append_items(result.items)

        self.store.set_pagination(
            PaginationState(
                cursor=result.next_cursor,
                current_page=result.current_page,
                initial_fetch_done=True,
            )
        )
        logger.info(
            f"Page {result.current_page}: {result.added} new items, "
            f"{len(self.store.items)} held, next page {result.next_cursor}"
        )
