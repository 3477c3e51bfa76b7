"""Upstream generation service contract and its HTTP implementation.

A generation service takes a prompt and returns an async iterator of
text increments. Services map their transport failures onto the
application's errors: NetworkError for dropped connections,
TimeoutError for transport timeouts, StreamReadError for a body that
cannot be read, UpstreamStatusError subclasses for error statuses.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import AsyncIterator, Optional

import httpx

from diff_digest.pagination.sources import error_message_from_response
from diff_digest.state.schema import Item
from diff_digest.utils.exceptions import (
    InvalidInputError,
    InvalidResponseError,
    NetworkError,
    RateLimitedError,
    ServerError,
    StreamReadError,
    TimeoutError,
)
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)

MAX_PROMPT_CHARS = 12000


@dataclass(frozen=True)
class GenerationRequest:
    """One request to the generation service."""

    prompt_title: str
    prompt_body: str
    partial_text: str = ""

    @classmethod
    def from_item(cls, item: Item, max_prompt_chars: int = MAX_PROMPT_CHARS) -> "GenerationRequest":
        """Build a request for an item, truncating the diff.

        Raises:
            InvalidInputError: If the description or the diff is blank.
        """
        title = item.description.strip()
        body = item.prompt_payload.strip()
        if not title or not body:
            raise InvalidInputError(
                "Invalid PR data: missing description or diff content",
                field="description" if not title else "diff",
                details={"item_id": item.id},
            )
        if len(body) > max_prompt_chars:
            logger.debug(
                f"Truncating diff for {item.id} from {len(body)} to {max_prompt_chars} chars"
            )
        return cls(prompt_title=title, prompt_body=body[:max_prompt_chars])

    def continuing(self, partial_text: str) -> "GenerationRequest":
        """Copy of this request that resumes after partial_text."""
        return replace(self, partial_text=partial_text)


class GenerationService(ABC):
    """Contract: submit a prompt, receive a stream of text increments."""

    @abstractmethod
    def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        """Open a generation stream.

        The request is sent when iteration starts. The iterator is finite
        and cannot be restarted.
        """

    async def aclose(self) -> None:
        """Release transport resources."""


class HttpGenerationService(GenerationService):
    """Streams notes from ``POST {base_url}/api/generate-notes``."""

    PATH = "/api/generate-notes"

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 60.0,
    ):
        """Initialize the service.

        Args:
            base_url: Service base URL, without trailing slash.
            client: Optional shared client; one is created and owned otherwise.
            timeout_seconds: Per-phase httpx timeout. The overall stream budget
                is enforced by the stream accumulator.
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        url = f"{self.base_url}{self.PATH}"
        body = {"title": request.prompt_title, "diff": request.prompt_body}
        logger.debug(f"Requesting notes for '{request.prompt_title}' from {url}")
        try:
            async with self._client.stream("POST", url, json=body) as response:
                if not response.is_success:
                    await response.aread()
                    raise self._status_error(response)

                content_type = response.headers.get("content-type", "")
                if "text/plain" not in content_type and "application/octet-stream" not in content_type:
                    logger.warning(
                        f"Unexpected content type for streaming response: {content_type}"
                    )

                async for text in response.aiter_text():
                    if text:
                        yield text
        except httpx.TimeoutException as e:
            raise TimeoutError(
                "Request timed out. The diff might be too large or the server is busy.",
                operation="generate_notes",
                details={"error": str(e)},
            )
        except (httpx.DecodingError, httpx.StreamError) as e:
            raise StreamReadError(
                "Failed to read response stream", details={"error": str(e)}
            )
        except httpx.TransportError as e:
            raise NetworkError(
                "Network error. Please check your connection and try again.",
                details={"error": str(e)},
            )

    @staticmethod
    def _status_error(response: httpx.Response) -> Exception:
        status = response.status_code
        if status == 429:
            return RateLimitedError(
                error_message_from_response(
                    response, "Too many requests. Please wait before generating more notes."
                ),
                status_code=status,
            )
        if status >= 500:
            return ServerError(
                error_message_from_response(
                    response, "Server error while generating notes. Please try again."
                ),
                status_code=status,
            )
        if status == 413:
            return InvalidInputError(
                "Diff content too large. Please try with a smaller diff.",
                field="diff",
                details={"status_code": status},
            )
        return InvalidResponseError(
            error_message_from_response(response, f"HTTP error! status: {status}"),
            details={"status_code": status},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
