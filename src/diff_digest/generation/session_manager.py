"""Per-item generation sessions.

The session manager owns every item's generation state machine:

    idle ──start──▶ generating ──completed, text──▶ complete
    interrupted ──resume──▶ generating ──completed, no text──▶ failed
    interrupted/failed/complete ──restart──▶ generating
    generating ──timeout/transport drop/abort, text──▶ interrupted
    generating ──anything else──▶ failed

At most one session runs per item. Sessions for different items run
concurrently as independent asyncio tasks on the same loop and share
nothing but the state store.
"""

import asyncio
from typing import Callable, Dict, List, Optional

from diff_digest.generation.accumulator import (
    AccumulationResult,
    StreamAccumulator,
    StreamOutcome,
)
from diff_digest.generation.service import (
    MAX_PROMPT_CHARS,
    GenerationRequest,
    GenerationService,
)
from diff_digest.state.schema import (
    INTERRUPTION_MARKER,
    GenerationRecord,
    GenerationState,
    Item,
)
from diff_digest.state.store import StateStore
from diff_digest.utils.exceptions import (
    DiffDigestError,
    GenerationInProgressError,
    StateError,
)
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


GENERIC_FAILURE = "⚠️ Failed to generate notes. Please try again."
EMPTY_RESPONSE = "⚠️ Received empty response from AI service"

OUTCOME_DIAGNOSTICS = {
    StreamOutcome.TIMED_OUT: "⏱️ Request timed out. The diff might be too large or the server is busy.",
    StreamOutcome.TRANSPORT_ERROR: "🌐 Network error. Please check your connection and try again.",
    StreamOutcome.ABORTED: "⚠️ Generation was cancelled before any notes were produced.",
    StreamOutcome.STREAM_READ_ERROR: "⚠️ Failed to read response stream",
}

IncrementListener = Callable[[str, str], None]


def diagnostic_for(result: AccumulationResult) -> str:
    """Pick the terminal message shown in place of failed notes."""
    if result.outcome is StreamOutcome.COMPLETED:
        return EMPTY_RESPONSE
    if result.outcome is StreamOutcome.UPSTREAM_ERROR:
        if isinstance(result.error, DiffDigestError) and result.error.message:
            return f"⚠️ {result.error.message}"
        return GENERIC_FAILURE
    return OUTCOME_DIAGNOSTICS.get(result.outcome, GENERIC_FAILURE)


class GenerationSessionManager:
    """Starts, tracks and settles generation sessions."""

    def __init__(
        self,
        store: StateStore,
        service: GenerationService,
        accumulator: Optional[StreamAccumulator] = None,
        max_prompt_chars: int = MAX_PROMPT_CHARS,
    ):
        """Initialize the session manager.

        Args:
            store: State store holding items and records.
            service: Upstream generation service.
            accumulator: Stream consumer; a 60 second budget by default.
            max_prompt_chars: Diff truncation limit for requests.
        """
        self.store = store
        self.service = service
        self.accumulator = accumulator or StreamAccumulator()
        self.max_prompt_chars = max_prompt_chars
        self._tasks: Dict[str, asyncio.Task] = {}
        self._increment_listeners: List[IncrementListener] = []

    # ===== Observation =====

    def add_increment_listener(self, listener: IncrementListener) -> Callable[[], None]:
        """Observe every appended increment as (item_id, text).

        Returns:
            A callable that removes the listener.
        """
        self._increment_listeners.append(listener)

        def remove() -> None:
            if listener in self._increment_listeners:
                self._increment_listeners.remove(listener)

        return remove

    def is_generating(self, item_id: str) -> bool:
        task = self._tasks.get(item_id)
        return task is not None and not task.done()

    def active_item_ids(self) -> List[str]:
        return [item_id for item_id in self._tasks if self.is_generating(item_id)]

    # ===== Commands =====

    def start(self, item: Item, resume: bool = False) -> asyncio.Task:
        """Start a generation session for item.

        Must be called with a running event loop.

        Args:
            item: Item to generate notes for.
            resume: Keep the interrupted text and append to it instead of
                starting over.

        Returns:
            The task running the session; it resolves to the settled record.

        Raises:
            GenerationInProgressError: If a session for the item is running.
            InvalidInputError: If the item has no description or diff.
            StateError: If resuming a record that is not interrupted.
        """
        if self.is_generating(item.id):
            raise GenerationInProgressError(item.id)

        request = GenerationRequest.from_item(item, self.max_prompt_chars)

        if resume:
            existing = self.store.get_record(item.id)
            if existing is None or existing.state is not GenerationState.INTERRUPTED:
                raise StateError(
                    f"Nothing to resume for item {item.id}",
                    details={
                        "item_id": item.id,
                        "state": existing.state.value if existing else GenerationState.IDLE.value,
                    },
                )
            request = request.continuing(existing.accumulated_text)

        record = self.store.ensure_record(item.id)
        if not resume:
            record.accumulated_text = ""
        record.state = GenerationState.GENERATING
        record.visible = True
        record.interruption_marker = None
        self.store.commit_record(record)

        logger.info(
            f"{'Resuming' if resume else 'Starting'} generation for {item.id}"
            + (f" after {len(record.accumulated_text)} chars" if resume else "")
        )
        task = asyncio.get_running_loop().create_task(
            self._run(record, request), name=f"generate:{item.id}"
        )
        self._tasks[item.id] = task
        task.add_done_callback(lambda t, item_id=item.id: self._forget(item_id, t))
        return task

    async def wait(self, item_id: str) -> Optional[GenerationRecord]:
        """Wait for the item's running session, if any, to settle.

        Aborting the session settles the record; only cancelling the
        waiter itself raises CancelledError.

        Returns:
            The item's record.
        """
        task = self._tasks.get(item_id)
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if not task.cancelled() or (current is not None and current.cancelling()):
                    raise
        return self.store.get_record(item_id)

    def abort(self, item_id: str) -> bool:
        """Cancel the item's running session.

        The session settles as interrupted when it has partial text.

        Returns:
            True if a running session was cancelled.
        """
        task = self._tasks.get(item_id)
        if task is None or task.done():
            return False
        logger.info(f"Aborting generation for {item_id}")
        return task.cancel()

    async def abort_all(self) -> None:
        """Abort every running session and wait until all have settled."""
        tasks = [task for task in self._tasks.values() if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        await self.abort_all()
        await self.service.aclose()

    def recover_stale_records(self) -> List[str]:
        """Settle records that were generating when the last process died.

        Returns:
            Ids of the records that were settled.
        """
        recovered = []
        for item_id, record in self.store.records.items():
            if record.state is not GenerationState.GENERATING or self.is_generating(item_id):
                continue
            self._settle(
                record,
                AccumulationResult(outcome=StreamOutcome.ABORTED),
            )
            recovered.append(item_id)
        if recovered:
            logger.info(f"Recovered {len(recovered)} sessions left generating")
        return recovered

    # ===== Session internals =====

    def _forget(self, item_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(item_id) is task:
            del self._tasks[item_id]
        if task.cancelled():
            # Cancelled before the session body ran
            record = self.store.get_record(item_id)
            if record is not None and record.state is GenerationState.GENERATING:
                self._settle(record, AccumulationResult(outcome=StreamOutcome.ABORTED))

    async def _run(
        self, record: GenerationRecord, request: GenerationRequest
    ) -> GenerationRecord:
        item_id = record.item_id

        def on_increment(text: str) -> None:
            self.store.commit_record(record)
            for listener in list(self._increment_listeners):
                try:
                    listener(item_id, text)
                except Exception as e:
                    logger.error(f"Increment listener failed: {e}", exc_info=True)

        try:
            result = await self.accumulator.consume(
                self.service.stream(request), record, on_increment
            )
        except Exception as e:
            logger.error(f"Generation for {item_id} failed unexpectedly: {e}", exc_info=True)
            result = AccumulationResult(outcome=StreamOutcome.UPSTREAM_ERROR, error=e)

        self._settle(record, result)
        return record

    def _settle(self, record: GenerationRecord, result: AccumulationResult) -> None:
        if result.outcome is StreamOutcome.COMPLETED and record.has_partial_text:
            record.state = GenerationState.COMPLETE
            record.interruption_marker = None
        elif result.outcome.is_recoverable and record.has_partial_text:
            record.state = GenerationState.INTERRUPTED
            record.interruption_marker = INTERRUPTION_MARKER
        else:
            record.state = GenerationState.FAILED
            record.interruption_marker = None
            record.accumulated_text = diagnostic_for(result)

        logger.info(f"Generation for {record.item_id} settled as {record.state.value}")

        if not self.store.has_item(record.item_id):
            # The item disappeared in a page-1 refetch while generating
            self.store.drop_record(record.item_id)
        else:
            self.store.commit_record(record)
