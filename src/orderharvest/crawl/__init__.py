"""Pagination and infinite-scroll crawl loops."""

from orderharvest.crawl.controller import (
    CrawlController,
    CrawlResult,
    PaginationSource,
    ProgressEvent,
    ScrollSource,
    StopReason,
)

__all__ = [
    "CrawlController",
    "CrawlResult",
    "PaginationSource",
    "ProgressEvent",
    "ScrollSource",
    "StopReason",
]
