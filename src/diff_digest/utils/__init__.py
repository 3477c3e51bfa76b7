"""Utility functions and helpers for Diff Digest.

This module contains shared utilities including logging setup
and custom exceptions.
"""

from diff_digest.utils.logging import setup_logging, get_logger
from diff_digest.utils.exceptions import (
    DiffDigestError,
    NetworkError,
    TimeoutError,
    ServerError,
    RateLimitedError,
    InvalidResponseError,
    InvalidInputError,
    StreamReadError,
    AbortedError,
    ConfigurationError,
    StateError,
    StorageError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "DiffDigestError",
    "NetworkError",
    "TimeoutError",
    "ServerError",
    "RateLimitedError",
    "InvalidResponseError",
    "InvalidInputError",
    "StreamReadError",
    "AbortedError",
    "ConfigurationError",
    "StateError",
    "StorageError",
]
