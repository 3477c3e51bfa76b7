"""Streaming release-notes generation for Diff Digest.

Core Components:
- GenerationSessionManager: per-item state machine and session tasks
- StreamAccumulator: pulls increments into a record and reports the outcome
- GenerationService: upstream contract (HTTP endpoint or chat model)
"""

from diff_digest.generation.accumulator import (
    AccumulationResult,
    StreamAccumulator,
    StreamOutcome,
)
from diff_digest.generation.service import (
    MAX_PROMPT_CHARS,
    GenerationRequest,
    GenerationService,
    HttpGenerationService,
)
from diff_digest.generation.session_manager import GenerationSessionManager

__all__ = [
    "AccumulationResult",
    "GenerationRequest",
    "GenerationService",
    "GenerationSessionManager",
    "HttpGenerationService",
    "MAX_PROMPT_CHARS",
    "StreamAccumulator",
    "StreamOutcome",
]
