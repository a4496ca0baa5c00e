"""Crawl loops over paginated listings and infinite-scroll feeds.

Both loops are strictly sequential: every step depends on the page the
previous navigation left the accessor on. The accumulator is only touched
after an iteration's extraction has returned, and cancellation is checked
between iterations, never mid-extraction.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import datetime as dt
from enum import Enum
from typing import Generic, Protocol, TypeVar

from orderharvest.core.dedup import KeyFn, RecordAccumulator
from orderharvest.core.errors import AuthenticationRequired, BatchAbort, NavigationFailure
from orderharvest.crawl.logger import CrawlLogger

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

AuthCheck = Callable[[], Awaitable[None]]


class PaginationSource(Protocol[T_co]):
    """A bounded listing split over numbered pages."""

    async def open(self) -> None:
        """Load the first page."""
        ...

    async def extract(self) -> list[T_co]:
        """Records on the page currently loaded."""
        ...

    async def has_next(self) -> bool: ...

    async def go_next(self) -> None:
        """Load the next page; raises ``NavigationFailure`` if it cannot."""
        ...


class ScrollSource(Protocol[T_co]):
    """An unbounded feed that grows as it is scrolled."""

    async def open(self) -> None: ...

    async def extract_visible(self) -> list[T_co]:
        """Every record currently rendered, old and new."""
        ...

    async def scroll_further(self) -> None: ...


class StopReason(str, Enum):
    NO_NEXT_PAGE = "no_next_page"
    CAP_REACHED = "cap_reached"
    PAGE_LIMIT = "page_limit"
    NAVIGATION_FAILED = "navigation_failed"
    STABLE = "stable"
    MAX_ITERATIONS = "max_iterations"
    START_DATE_REACHED = "start_date_reached"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    message: str
    current: int
    total: int | None = None


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class CrawlResult(Generic[T]):
    """Records gathered by a crawl and why it stopped."""

    records: list[T]
    iterations: int
    stop_reason: StopReason
    error: BatchAbort | None = None


class CrawlController:
    """Drives pagination and infinite-scroll crawls to completion."""

    def __init__(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        logger: CrawlLogger | None = None,
    ) -> None:
        """Initialize controller.

        Args:
            on_progress: Called with a ProgressEvent after every iteration
            cancel_event: Set to stop the crawl before its next iteration
            logger: Logger for crawl milestones
        """
        self._on_progress = on_progress
        self._cancel_event = cancel_event
        self._logger = logger or CrawlLogger()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _report(self, message: str, current: int, total: int | None = None) -> None:
        if self._on_progress is not None:
            self._on_progress(ProgressEvent(message, current, total))

    @staticmethod
    async def _open(source: PaginationSource[T] | ScrollSource[T]) -> None:
        try:
            await source.open()
        except NavigationFailure as e:
            msg = f"Could not open the first page: {e}"
            raise BatchAbort(msg) from e

    async def paginate(
        self,
        source: PaginationSource[T],
        key: KeyFn[T],
        *,
        max_records: int | None = None,
        max_pages: int | None = None,
        auth_check: AuthCheck | None = None,
        total_hint: int | None = None,
    ) -> CrawlResult[T]:
        """Extract every page of a listing.

        Args:
            source: Listing to crawl
            key: Dedup key for the records
            max_records: Stop once this many unique records are held; extra
                records from the last page are dropped
            max_pages: Stop after this many pages
            auth_check: Awaited after the first page loads and before any
                extraction; raises ``AuthenticationRequired`` to stop
            total_hint: Expected record count, reported in progress events

        Returns:
            CrawlResult with the unique records in first-seen order. Any
            error other than ``AuthenticationRequired`` after the first page
            ends the crawl with ``StopReason.ABORTED`` and is kept on
            ``error`` as a ``BatchAbort``.

        Raises:
            AuthenticationRequired: If ``auth_check`` fails
            BatchAbort: If the first page cannot be loaded
        """
        await self._open(source)
        if auth_check is not None:
            await auth_check()

        accumulator: RecordAccumulator[T] = RecordAccumulator(key)
        page = 0
        error: BatchAbort | None = None
        try:
            while True:
                if self.cancelled:
                    self._logger.cancelled(page)
                    reason = StopReason.CANCELLED
                    break

                page += 1
                records = await source.extract()
                added = accumulator.add(records)
                self._logger.page_fetched(page, len(records), added, len(accumulator))

                capped = False
                if max_records is not None and len(accumulator) >= max_records:
                    capped = True
                    accumulator.truncate(max_records)
                    self._logger.cap_reached(max_records)
                self._report(f"Fetched page {page}", len(accumulator), total_hint)

                if capped:
                    reason = StopReason.CAP_REACHED
                    break
                if max_pages is not None and page >= max_pages:
                    reason = StopReason.PAGE_LIMIT
                    break
                if not await source.has_next():
                    reason = StopReason.NO_NEXT_PAGE
                    break
                try:
                    await source.go_next()
                except NavigationFailure as e:
                    self._logger.navigation_failed(page + 1, e)
                    reason = StopReason.NAVIGATION_FAILED
                    break
        except AuthenticationRequired:
            raise
        except Exception as e:
            error = _as_abort(e)
            self._logger.aborted(page, len(accumulator), error)
            reason = StopReason.ABORTED

        self._logger.finished(reason.value, page, len(accumulator))
        return CrawlResult(accumulator.records, page, reason, error)

    async def scroll(
        self,
        source: ScrollSource[T],
        key: KeyFn[T],
        *,
        start_date: dt.date | None = None,
        date_of: Callable[[T], dt.date | None] | None = None,
        max_iterations: int = 50,
        stability_threshold: int = 3,
        auth_check: AuthCheck | None = None,
    ) -> CrawlResult[T]:
        """Scroll a feed until it stops growing.

        The loop ends after ``stability_threshold`` consecutive iterations
        without a new record, after ``max_iterations`` iterations, or once
        the oldest record held is dated before ``start_date``. An error once
        the feed is open keeps the records gathered so far and ends with
        ``StopReason.ABORTED``.

        Raises:
            AuthenticationRequired: If ``auth_check`` fails
            BatchAbort: If the feed cannot be loaded
        """
        await self._open(source)
        if auth_check is not None:
            await auth_check()

        accumulator: RecordAccumulator[T] = RecordAccumulator(key)
        stable = 0
        iteration = 0
        error: BatchAbort | None = None
        try:
            while True:
                if self.cancelled:
                    self._logger.cancelled(iteration)
                    reason = StopReason.CANCELLED
                    break

                iteration += 1
                visible = await source.extract_visible()
                added = accumulator.add(visible)
                stable = 0 if added else stable + 1
                self._logger.scroll_pass(
                    iteration, len(visible), added, len(accumulator), stable
                )
                self._report(f"Scroll {iteration}", len(accumulator))

                if _older_than(accumulator.records, date_of, start_date):
                    reason = StopReason.START_DATE_REACHED
                    break
                if stable >= stability_threshold:
                    reason = StopReason.STABLE
                    break
                if iteration >= max_iterations:
                    reason = StopReason.MAX_ITERATIONS
                    break
                await source.scroll_further()
        except AuthenticationRequired:
            raise
        except Exception as e:
            error = _as_abort(e)
            self._logger.aborted(iteration, len(accumulator), error)
            reason = StopReason.ABORTED

        self._logger.finished(reason.value, iteration, len(accumulator))
        return CrawlResult(accumulator.records, iteration, reason, error)


def _older_than(
    records: list[T],
    date_of: Callable[[T], dt.date | None] | None,
    start_date: dt.date | None,
) -> bool:
    if start_date is None or date_of is None:
        return False
    dates = [value for value in map(date_of, records) if value is not None]
    return bool(dates) and min(dates) < start_date


def _as_abort(error: Exception) -> BatchAbort:
    if isinstance(error, BatchAbort):
        return error
    abort = BatchAbort(f"{type(error).__name__}: {error}")
    abort.__cause__ = error
    return abort
