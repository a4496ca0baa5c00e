"""Tests for the pagination and scroll crawl loops."""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Any
from unittest.mock import MagicMock

import pytest

from orderharvest.core.errors import (
    AuthenticationRequired,
    BatchAbort,
    NavigationFailure,
)
from orderharvest.crawl.controller import CrawlController, ProgressEvent, StopReason
from orderharvest.crawl.logger import CrawlLogger


def _run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _identity(record: str) -> str:
    return record


class FakePages:
    """Pagination source serving fixed pages of string records."""

    def __init__(
        self,
        pages: list[list[str]],
        *,
        fail_open: bool = False,
        fail_next_at: int | None = None,
        abort_next_at: int | None = None,
        fail_extract_at: int | None = None,
    ) -> None:
        self.pages = pages
        self.fail_open = fail_open
        self.fail_next_at = fail_next_at
        self.abort_next_at = abort_next_at
        self.fail_extract_at = fail_extract_at
        self.index = 0
        self.extract_calls = 0

    async def open(self) -> None:
        if self.fail_open:
            raise NavigationFailure("https://orders.test/", "timeout")
        self.index = 0

    async def extract(self) -> list[str]:
        self.extract_calls += 1
        if self.fail_extract_at == self.index:
            msg = "element detached"
            raise RuntimeError(msg)
        return list(self.pages[self.index])

    async def has_next(self) -> bool:
        return self.index + 1 < len(self.pages)

    async def go_next(self) -> None:
        if self.fail_next_at == self.index + 1:
            raise NavigationFailure(f"https://orders.test/{self.index + 1}")
        if self.abort_next_at == self.index + 1:
            msg = "Browser page is closed"
            raise BatchAbort(msg)
        self.index += 1


class FakeFeed:
    """Scroll source whose visible records grow per scroll."""

    def __init__(
        self,
        snapshots: list[list[tuple[str, date]]],
        *,
        abort_after: int | None = None,
    ) -> None:
        self.snapshots = snapshots
        self.abort_after = abort_after
        self.index = 0
        self.scrolls = 0

    async def open(self) -> None:
        self.index = 0

    async def extract_visible(self) -> list[tuple[str, date]]:
        return list(self.snapshots[self.index])

    async def scroll_further(self) -> None:
        if self.abort_after is not None and self.scrolls >= self.abort_after:
            msg = "Browser page is closed"
            raise BatchAbort(msg)
        self.scrolls += 1
        self.index = min(self.index + 1, len(self.snapshots) - 1)


class TestPaginate:
    """Tests for CrawlController.paginate."""

    def test_three_pages_three_extractions(self) -> None:
        # input
        source = FakePages([["a", "b"], ["c", "d"], ["e"]])
        controller = CrawlController()

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert source.extract_calls == 3
        assert result.records == ["a", "b", "c", "d", "e"]
        assert result.iterations == 3
        assert result.stop_reason is StopReason.NO_NEXT_PAGE

    def test_cap_truncates_and_stops_early(self) -> None:
        # input
        source = FakePages([["a", "b"], ["c", "d"], ["e"]])
        controller = CrawlController()

        # act
        result = _run_async(controller.paginate(source, _identity, max_records=3))

        # assert
        assert result.records == ["a", "b", "c"]
        assert source.extract_calls == 2
        assert result.stop_reason is StopReason.CAP_REACHED

    def test_duplicates_across_pages_kept_once(self) -> None:
        # input
        source = FakePages([["a", "b"], ["b", "c"]])
        controller = CrawlController()

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert result.records == ["a", "b", "c"]

    def test_page_limit(self) -> None:
        # input
        source = FakePages([["a"], ["b"], ["c"]])
        controller = CrawlController()

        # act
        result = _run_async(controller.paginate(source, _identity, max_pages=2))

        # assert
        assert result.records == ["a", "b"]
        assert result.stop_reason is StopReason.PAGE_LIMIT

    def test_navigation_failure_keeps_partial_results(self) -> None:
        # input
        source = FakePages([["a"], ["b"], ["c"]], fail_next_at=2)
        mock_logger = MagicMock(spec=CrawlLogger)
        controller = CrawlController(logger=mock_logger)

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert result.records == ["a", "b"]
        assert result.stop_reason is StopReason.NAVIGATION_FAILED
        mock_logger.navigation_failed.assert_called_once()

    def test_first_page_failure_aborts(self) -> None:
        # input
        source = FakePages([["a"]], fail_open=True)
        controller = CrawlController()

        # act & assert
        with pytest.raises(BatchAbort, match="first page"):
            _run_async(controller.paginate(source, _identity))

    def test_abort_after_first_page_keeps_records(self) -> None:
        # input
        source = FakePages([["a", "b"], ["c"], ["d"]], abort_next_at=2)
        mock_logger = MagicMock(spec=CrawlLogger)
        controller = CrawlController(logger=mock_logger)

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert result.records == ["a", "b", "c"]
        assert result.iterations == 2
        assert result.stop_reason is StopReason.ABORTED
        assert isinstance(result.error, BatchAbort)
        mock_logger.aborted.assert_called_once()

    def test_unexpected_error_kept_as_abort(self) -> None:
        # input
        source = FakePages([["a", "b"], ["c"]], fail_extract_at=1)
        controller = CrawlController()

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert result.records == ["a", "b"]
        assert result.stop_reason is StopReason.ABORTED
        assert result.error is not None
        assert str(result.error) == "RuntimeError: element detached"
        assert isinstance(result.error.__cause__, RuntimeError)

    def test_completed_crawl_has_no_error(self) -> None:
        # input
        source = FakePages([["a"], ["b"]])
        controller = CrawlController()

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert result.error is None

    def test_auth_check_runs_before_extraction(self) -> None:
        # input
        source = FakePages([["a"]])
        controller = CrawlController()

        async def signed_out() -> None:
            raise AuthenticationRequired("https://orders.test/ap/signin")

        # act & assert
        with pytest.raises(AuthenticationRequired):
            _run_async(controller.paginate(source, _identity, auth_check=signed_out))
        assert source.extract_calls == 0

    def test_cancel_before_first_page(self) -> None:
        # input
        source = FakePages([["a"], ["b"]])
        cancel = asyncio.Event()
        cancel.set()
        controller = CrawlController(cancel_event=cancel)

        # act
        result = _run_async(controller.paginate(source, _identity))

        # assert
        assert result.records == []
        assert result.stop_reason is StopReason.CANCELLED

    def test_progress_reported_per_page(self) -> None:
        # input
        events: list[ProgressEvent] = []
        source = FakePages([["a", "b"], ["c"]])
        controller = CrawlController(on_progress=events.append)

        # act
        _run_async(controller.paginate(source, _identity, total_hint=3))

        # assert
        assert [(event.current, event.total) for event in events] == [(2, 3), (3, 3)]
        assert events[0].message == "Fetched page 1"


class TestScroll:
    """Tests for CrawlController.scroll."""

    def test_stops_when_stable(self) -> None:
        # input
        first = [("t1", date(2024, 11, 14))]
        second = first + [("t2", date(2024, 11, 10))]
        feed = FakeFeed([first, second])
        controller = CrawlController()

        # act
        result = _run_async(
            controller.scroll(feed, lambda row: row[0], stability_threshold=2)
        )

        # assert
        assert [row[0] for row in result.records] == ["t1", "t2"]
        assert result.stop_reason is StopReason.STABLE
        assert result.iterations == 4

    def test_max_iterations(self) -> None:
        # input
        snapshots = [
            [(f"t{index}", date(2024, 1, 1))] for index in range(10)
        ]
        feed = FakeFeed(snapshots)
        controller = CrawlController()

        # act
        result = _run_async(
            controller.scroll(feed, lambda row: row[0], max_iterations=3)
        )

        # assert
        assert len(result.records) == 3
        assert result.stop_reason is StopReason.MAX_ITERATIONS
        assert feed.scrolls == 2

    def test_stops_past_start_date(self) -> None:
        # input
        first = [("t1", date(2024, 11, 14))]
        second = first + [("t2", date(2024, 9, 1))]
        third = second + [("t3", date(2024, 8, 1))]
        feed = FakeFeed([first, second, third])
        controller = CrawlController()

        # act
        result = _run_async(
            controller.scroll(
                feed,
                lambda row: row[0],
                start_date=date(2024, 10, 1),
                date_of=lambda row: row[1],
            )
        )

        # assert
        assert result.stop_reason is StopReason.START_DATE_REACHED
        assert result.iterations == 2

    def test_abort_mid_scroll_keeps_records(self) -> None:
        # input
        first = [("t1", date(2024, 11, 14))]
        second = first + [("t2", date(2024, 11, 10))]
        feed = FakeFeed([first, second], abort_after=1)
        mock_logger = MagicMock(spec=CrawlLogger)
        controller = CrawlController(logger=mock_logger)

        # act
        result = _run_async(controller.scroll(feed, lambda row: row[0]))

        # assert
        assert [row[0] for row in result.records] == ["t1", "t2"]
        assert result.iterations == 2
        assert result.stop_reason is StopReason.ABORTED
        assert isinstance(result.error, BatchAbort)
        mock_logger.aborted.assert_called_once()

    def test_cancel_between_iterations(self) -> None:
        # input
        snapshots = [
            [(f"t{index}", date(2024, 1, 1))] for index in range(5)
        ]
        feed = FakeFeed(snapshots)
        cancel = asyncio.Event()
        events: list[ProgressEvent] = []

        def on_progress(event: ProgressEvent) -> None:
            events.append(event)
            cancel.set()

        controller = CrawlController(on_progress=on_progress, cancel_event=cancel)

        # act
        result = _run_async(controller.scroll(feed, lambda row: row[0]))

        # assert
        assert [row[0] for row in result.records] == ["t0"]
        assert result.stop_reason is StopReason.CANCELLED
        assert result.iterations == 1
        assert feed.scrolls == 1
        assert len(events) == 1

    def test_progress_reported_per_iteration(self) -> None:
        # input
        first = [("t1", date(2024, 11, 14))]
        second = first + [("t2", date(2024, 11, 10))]
        feed = FakeFeed([first, second])
        events: list[ProgressEvent] = []
        controller = CrawlController(on_progress=events.append)

        # act
        _run_async(
            controller.scroll(feed, lambda row: row[0], stability_threshold=1)
        )

        # assert
        assert [(event.message, event.current) for event in events] == [
            ("Scroll 1", 1),
            ("Scroll 2", 2),
            ("Scroll 3", 2),
        ]
        assert all(event.total is None for event in events)
