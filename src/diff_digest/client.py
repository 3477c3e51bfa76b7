"""Diff Digest client.

The client wires the pagination fetcher, the generation session manager
and the persistence mirror around one state store, and exposes the
commands and read-only views used by presentation code.

Startup order matters: ``start()`` restores persisted state and only then
enables write-through and commands, so no network activity or write can
happen against an unhydrated store.
"""

import asyncio
from typing import Callable, List, Optional, Tuple

from diff_digest.config.env_schema import EnvironmentConfig
from diff_digest.config.models import Config
from diff_digest.generation.accumulator import StreamAccumulator
from diff_digest.generation.providers import create_generation_service
from diff_digest.generation.service import MAX_PROMPT_CHARS, GenerationService
from diff_digest.generation.session_manager import (
    GenerationSessionManager,
    IncrementListener,
)
from diff_digest.pagination.fetcher import PageResult, PaginationFetcher
from diff_digest.pagination.sources import HttpItemSource, ItemSource
from diff_digest.persistence.mirror import PersistenceMirror
from diff_digest.persistence.storage import JsonFileStorage, KeyValueStorage
from diff_digest.state.schema import GenerationRecord, Item, ItemView, PaginationState
from diff_digest.state.store import StateListener, StateStore
from diff_digest.utils.exceptions import StateError
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


class DiffDigestClient:
    """One client instance: items, generation sessions and their persistence."""

    def __init__(
        self,
        source: ItemSource,
        service: GenerationService,
        storage: KeyValueStorage,
        per_page: int = 10,
        fetch_timeout_seconds: float = 30.0,
        generation_timeout_seconds: float = 60.0,
        max_prompt_chars: int = MAX_PROMPT_CHARS,
    ):
        """Initialize the client.

        Args:
            source: Paginated diff source.
            service: Release-notes generation service.
            storage: Durable key/value storage for the state mirror.
            per_page: Page size requested from the source.
            fetch_timeout_seconds: Budget for one page fetch.
            generation_timeout_seconds: Budget for one generation stream.
            max_prompt_chars: Diff truncation limit for generation requests.
        """
        self.store = StateStore()
        self.mirror = PersistenceMirror(storage)
        self.source = source
        self.fetcher = PaginationFetcher(
            source, self.store, per_page=per_page, timeout_seconds=fetch_timeout_seconds
        )
        self.sessions = GenerationSessionManager(
            self.store,
            service,
            accumulator=StreamAccumulator(generation_timeout_seconds),
            max_prompt_chars=max_prompt_chars,
        )
        self._detach_mirror: Optional[Callable[[], None]] = None
        self._started = False

    @classmethod
    def from_config(
        cls, config: Config, env: Optional[EnvironmentConfig] = None
    ) -> "DiffDigestClient":
        """Build a client with HTTP sources and file storage.

        Args:
            config: Validated application configuration.
            env: Environment settings; provides the OpenAI key for the llm backend.
        """
        source = HttpItemSource(
            config.item_source.base_url,
            timeout_seconds=config.item_source.timeout_seconds,
        )
        service = create_generation_service(
            config.generation,
            config.generation_base_url(),
            env=env,
        )
        storage = JsonFileStorage(
            config.storage.directory, quota_bytes=config.storage.quota_bytes
        )
        return cls(
            source,
            service,
            storage,
            per_page=config.item_source.per_page,
            fetch_timeout_seconds=config.item_source.timeout_seconds,
            generation_timeout_seconds=config.generation.timeout_seconds,
            max_prompt_chars=config.generation.max_prompt_chars,
        )

    # ===== Lifecycle =====

    @property
    def started(self) -> bool:
        return self._started

    def start(self, hydrate: bool = True) -> None:
        """Restore persisted state and enable commands.

        Args:
            hydrate: Restore from storage; when False, start empty without
                touching what is stored until the first change.
        """
        if self._started:
            return
        if hydrate:
            restored = self.mirror.load()
            if restored.is_empty:
                logger.info("No stored state found; starting empty")
            self.store.hydrate(restored.items, restored.records, restored.pagination)
        else:
            self.mirror.skip_hydration()
        self._detach_mirror = self.mirror.attach(self.store)
        self.sessions.recover_stale_records()
        self._started = True
        logger.debug("Client started")

    async def close(self) -> None:
        """Abort running sessions and release transports.

        Aborted sessions with partial text are persisted as interrupted.
        """
        await self.sessions.shutdown()
        await self.source.aclose()
        if self._detach_mirror is not None:
            self._detach_mirror()
            self._detach_mirror = None
        self._started = False

    async def __aenter__(self) -> "DiffDigestClient":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _require_started(self) -> None:
        if not self._started:
            raise StateError("Client not started; call start() first")

    # ===== Read-only views =====

    @property
    def items(self) -> Tuple[Item, ...]:
        return self.store.items

    @property
    def pagination(self) -> PaginationState:
        return self.store.pagination

    @property
    def persistence_degraded(self) -> bool:
        """True once a write failed; changes are not persisted this session."""
        return self.mirror.degraded

    def view(self, item_id: str) -> ItemView:
        return self.store.view(item_id)

    def views(self) -> List[ItemView]:
        return self.store.views()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def on_increment(self, listener: IncrementListener) -> Callable[[], None]:
        return self.sessions.add_increment_listener(listener)

    # ===== Commands =====

    async def fetch_next_page(self) -> Optional[PageResult]:
        """Load the next page (page 1 if nothing was fetched yet)."""
        self._require_started()
        return await self.fetcher.fetch_next_page()

    async def refetch(self) -> PageResult:
        """Fetch page 1 again, rebuilding the item list."""
        self._require_started()
        return await self.fetcher.fetch_first_page()

    def request_generation(self, item_id: str) -> asyncio.Task:
        """Generate notes from scratch, discarding any previous text."""
        self._require_started()
        return self.sessions.start(self.store.get_item(item_id), resume=False)

    def resume_generation(self, item_id: str) -> asyncio.Task:
        """Continue an interrupted generation after its partial text."""
        self._require_started()
        return self.sessions.start(self.store.get_item(item_id), resume=True)

    def abort_generation(self, item_id: str) -> bool:
        self._require_started()
        return self.sessions.abort(item_id)

    async def wait(self, item_id: str) -> Optional[GenerationRecord]:
        return await self.sessions.wait(item_id)

    def toggle_visibility(self, item_id: str) -> bool:
        """Show or hide an item's notes.

        Returns:
            The new visibility.
        """
        self._require_started()
        record = self.store.ensure_record(item_id)
        record.visible = not record.visible
        self.store.commit_record(record)
        return record.visible

    async def reset_all(self) -> None:
        """Abort every session and forget all items, notes and the cursor."""
        self._require_started()
        await self.sessions.abort_all()
        self.store.reset()
        logger.info("All client state cleared")
