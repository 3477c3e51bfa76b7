"""Paginated item fetching for Diff Digest."""

from diff_digest.pagination.fetcher import PageResult, PaginationFetcher
from diff_digest.pagination.sources import HttpItemSource, ItemSource

__all__ = [
    "HttpItemSource",
    "ItemSource",
    "PageResult",
    "PaginationFetcher",
]
