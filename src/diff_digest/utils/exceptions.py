"""Custom exceptions for Diff Digest.

This module defines application-specific exceptions. The first group mirrors
the failure modes of the upstream collaborators (item source and generation
service); the second group covers local configuration, state and storage
problems.
"""

from typing import Optional, Any


class DiffDigestError(Exception):
    """Base exception for all Diff Digest errors.

    All custom exceptions in the application should inherit from this class
    to allow for easy catching of application-specific errors.
    """

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        """Initialize the exception.

        Args:
            message: Error message.
            details: Optional dictionary with additional error details.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NetworkError(DiffDigestError):
    """Raised when the transport fails before or while a request is sent.

    This includes connection failures, dropped connections and resets
    while a streamed body is being read.
    """

    pass


class TimeoutError(DiffDigestError):
    """Raised when an operation exceeds its time budget."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize timeout error.

        Args:
            message: Error message.
            operation: Operation that timed out.
            timeout_seconds: Timeout duration in seconds.
            details: Additional error details.
        """
        super().__init__(message, details)
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class UpstreamStatusError(DiffDigestError):
    """Raised when an upstream answers with an error status code."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize upstream status error.

        Args:
            message: Error message.
            status_code: HTTP status returned by the upstream.
            details: Additional error details.
        """
        super().__init__(message, details)
        self.status_code = status_code


class ServerError(UpstreamStatusError):
    """Raised when an upstream answers with a 5xx status."""

    pass


class RateLimitedError(UpstreamStatusError):
    """Raised when an upstream answers with 429 Too Many Requests."""

    pass


class InvalidResponseError(DiffDigestError):
    """Raised when a non-streaming response is malformed or incomplete."""

    pass


class InvalidInputError(DiffDigestError):
    """Raised when a local precondition is violated.

    No network traffic happens when this error is raised.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        """Initialize input error.

        Args:
            message: Error message.
            field: Field that failed validation.
            value: Value that failed validation.
            details: Additional error details.
        """
        super().__init__(message, details)
        self.field = field
        self.value = value


class StreamReadError(DiffDigestError):
    """Raised when a stream terminates abnormally mid-read."""

    pass


class AbortedError(DiffDigestError):
    """Raised when an in-flight operation is explicitly cancelled."""

    pass


class ConfigurationError(DiffDigestError):
    """Raised when there's an error in configuration.

    This includes invalid YAML syntax, invalid field values or
    unusable environment settings.
    """

    pass


class StateError(DiffDigestError):
    """Raised when an operation is not allowed in the current state."""

    pass


class GenerationInProgressError(StateError):
    """Raised when generation is requested for an item that is already generating."""

    def __init__(self, item_id: str):
        super().__init__(
            f"Generation already in progress for item {item_id}",
            details={"item_id": item_id},
        )
        self.item_id = item_id


class StorageError(DiffDigestError):
    """Raised when durable storage cannot be read or written."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.key = key


class StorageQuotaExceededError(StorageError):
    """Raised when a write would exceed the storage quota."""

    pass
