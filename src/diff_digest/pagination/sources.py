"""Item sources for the pagination fetcher.

An item source fetches one raw page payload. It is responsible for the
transport and for mapping transport and status failures onto the
application's error taxonomy; structural validation of the payload is
done by the fetcher.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from diff_digest.utils.exceptions import (
    InvalidResponseError,
    NetworkError,
    RateLimitedError,
    ServerError,
    TimeoutError,
)
from diff_digest.utils.logging import get_logger

logger = get_logger(__name__)


class ItemSource(ABC):
    """Contract: fetch page N, receive items plus the next cursor."""

    @abstractmethod
    async def fetch(self, page: int, per_page: int) -> Dict[str, Any]:
        """Fetch one page.

        Args:
            page: Page number, starting at 1.
            per_page: Requested page size.

        Returns:
            Raw payload shaped like
            ``{"diffs": [...], "nextPage": int | None, "currentPage": int, "perPage": int}``.
        """

    async def aclose(self) -> None:
        """Release transport resources."""


def error_message_from_response(response: httpx.Response, default: str) -> str:
    """Pick the most useful error message from an error response.

    JSON bodies with an ``error``, ``details`` or ``message`` field win over
    the generic default.
    """
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        for field in ("error", "details", "message"):
            value = body.get(field)
            if isinstance(value, str) and value:
                return value
    return default


class HttpItemSource(ItemSource):
    """Fetches pages from ``GET {base_url}/api/sample-diffs``."""

    PATH = "/api/sample-diffs"

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 30.0,
    ):
        """Initialize the source.

        Args:
            base_url: Service base URL, without trailing slash.
            client: Optional shared client; one is created and owned otherwise.
            timeout_seconds: Per-phase httpx timeout.
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def fetch(self, page: int, per_page: int) -> Dict[str, Any]:
        url = f"{self.base_url}{self.PATH}"
        logger.debug(f"Fetching page {page} ({per_page} per page) from {url}")
        try:
            response = await self._client.get(
                url,
                params={"page": page, "per_page": per_page},
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise TimeoutError(
                f"Request timed out fetching page {page}",
                operation="fetch_page",
                details={"error": str(e)},
            )
        except httpx.TransportError as e:
            raise NetworkError(
                "Network error. Please check your internet connection.",
                details={"page": page, "error": str(e)},
            )

        if response.status_code == 429:
            raise RateLimitedError(
                error_message_from_response(
                    response, "Too many requests. Please wait a moment and try again."
                ),
                status_code=429,
            )
        if response.status_code >= 500:
            raise ServerError(
                error_message_from_response(
                    response, "Server error. Please try again later."
                ),
                status_code=response.status_code,
            )
        if not response.is_success:
            default = (
                "API endpoint not found."
                if response.status_code == 404
                else f"HTTP error! status: {response.status_code}"
            )
            raise InvalidResponseError(
                error_message_from_response(response, default),
                details={"status_code": response.status_code},
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise InvalidResponseError(
                "Invalid response format. Expected JSON.",
                details={"content_type": content_type},
            )
        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError(
                "Invalid response data structure.", details={"error": str(e)}
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
