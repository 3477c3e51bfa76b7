"""Incremental consumption of a generation stream.

The accumulator pulls text increments from an open stream, appends each
one verbatim to the owning record and reports how the stream ended. It
never retries; what to do with an interrupted stream is decided by the
session manager.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Optional

from diff_digest.state.schema import GenerationRecord
from diff_digest.utils.exceptions import (
    AbortedError,
    DiffDigestError,
    NetworkError,
    StreamReadError,
    TimeoutError,
)
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


class StreamOutcome(str, Enum):
    """How a stream consumption ended."""

    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    TRANSPORT_ERROR = "transport_error"
    ABORTED = "aborted"
    STREAM_READ_ERROR = "stream_read_error"
    UPSTREAM_ERROR = "upstream_error"

    @property
    def is_recoverable(self) -> bool:
        """Whether partial text from this outcome can be resumed."""
        return self in (
            StreamOutcome.TIMED_OUT,
            StreamOutcome.TRANSPORT_ERROR,
            StreamOutcome.ABORTED,
        )


@dataclass
class AccumulationResult:
    """Terminal report of one stream consumption."""

    outcome: StreamOutcome
    increments: int = 0
    appended_chars: int = 0
    error: Optional[BaseException] = None


IncrementCallback = Callable[[str], None]


class StreamAccumulator:
    """Consumes one stream into one generation record."""

    def __init__(self, timeout_seconds: float = 60.0):
        """Initialize the accumulator.

        Args:
            timeout_seconds: Budget for the whole stream, from the first
                read to the last increment.
        """
        self.timeout_seconds = timeout_seconds

    async def consume(
        self,
        stream: AsyncIterator[str],
        record: GenerationRecord,
        on_increment: Optional[IncrementCallback] = None,
    ) -> AccumulationResult:
        """Append every increment of stream to record.

        on_increment is called synchronously right after each append, so
        observers always see the text grow in arrival order.

        Args:
            stream: Open stream of text increments.
            record: Record in the generating state.
            on_increment: Optional observer of each appended increment.

        Returns:
            The outcome and what was appended before it.
        """
        result = AccumulationResult(outcome=StreamOutcome.COMPLETED)
        try:
            async with asyncio.timeout(self.timeout_seconds):
                async for increment in stream:
                    if not increment:
                        continue
                    record.append(increment)
                    result.increments += 1
                    result.appended_chars += len(increment)
                    if on_increment is not None:
                        on_increment(increment)
        except asyncio.TimeoutError:
            result.outcome = StreamOutcome.TIMED_OUT
            result.error = TimeoutError(
                "Generation exceeded its time budget",
                operation="generate_notes",
                timeout_seconds=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None:
                task.uncancel()
            result.outcome = StreamOutcome.ABORTED
            result.error = AbortedError("Generation was aborted")
        except TimeoutError as e:
            result.outcome = StreamOutcome.TIMED_OUT
            result.error = e
        except AbortedError as e:
            result.outcome = StreamOutcome.ABORTED
            result.error = e
        except NetworkError as e:
            result.outcome = StreamOutcome.TRANSPORT_ERROR
            result.error = e
        except StreamReadError as e:
            result.outcome = StreamOutcome.STREAM_READ_ERROR
            result.error = e
        except DiffDigestError as e:
            result.outcome = StreamOutcome.UPSTREAM_ERROR
            result.error = e
        finally:
            await self._close(stream)

        log = logger.info if result.outcome is StreamOutcome.COMPLETED else logger.warning
        log(
            f"Stream for {record.item_id} ended: {result.outcome.value} after "
            f"{result.increments} increments ({result.appended_chars} chars)"
            + (f" - {result.error}" if result.error else "")
        )
        return result

    @staticmethod
    async def _close(stream: AsyncIterator[str]) -> None:
        aclose = getattr(stream, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except RuntimeError as e:
            # aclose() on a generator that is still running
            logger.debug(f"Could not close stream: {e}")
