"""Tests for order card extraction and order list pagination."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock

from orderharvest.adapters.documents.html import HtmlDocument
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_list import (
    OrderListExtractor,
    OrderListPages,
    expected_order_count,
    has_next_page,
    status_from_card_text,
    status_from_primary_text,
)
from orderharvest.amazon.urls import order_list_url
from orderharvest.core.dedup import header_key
from orderharvest.core.records import OrderStatus
from orderharvest.core.strategy import StrategyRunner
from orderharvest.crawl.controller import CrawlController, StopReason
from tests.amazon.fixtures import (
    ORDER_ID,
    order_card,
    order_list_page,
    unreadable_document,
)


def _run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


class TestOrderListExtractor:
    """Tests for OrderListExtractor."""

    def test_parses_order_card(self) -> None:
        # input
        document = HtmlDocument.from_html(order_list_page([order_card(item_count=2)]))
        extractor = OrderListExtractor(document, StrategyRunner())

        # act
        headers = _run_async(extractor.extract("uk"))

        # assert
        assert len(headers) == 1
        header = headers[0]
        assert header.id == ORDER_ID
        assert header.date == date(2024, 11, 14)
        assert header.total.amount == Decimal("25.99")
        assert header.total.currency == "GBP"
        assert header.status is OrderStatus.DELIVERED
        assert header.status_label == "Delivered 16 November"
        assert header.recipient == "Jane Doe"
        assert header.item_count == 2
        assert header.region == "uk"
        assert header.detail_url.endswith(f"order-details?orderID={ORDER_ID}")

    def test_duplicate_cards_kept_once(self) -> None:
        # input
        document = HtmlDocument.from_html(
            order_list_page([order_card(), order_card(total="£99.99")])
        )
        extractor = OrderListExtractor(document, StrategyRunner())

        # act
        headers = _run_async(extractor.extract("uk"))

        # assert
        assert [header.total.amount for header in headers] == [Decimal("25.99")]

    def test_card_without_order_id_dropped(self) -> None:
        # input
        document = HtmlDocument.from_html(
            order_list_page([order_card(order_id=""), order_card()])
        )
        mock_logger = MagicMock(spec=AmazonExtractionLogger)
        extractor = OrderListExtractor(document, StrategyRunner(), mock_logger)

        # act
        headers = _run_async(extractor.extract("uk"))

        # assert
        assert [header.id for header in headers] == [ORDER_ID]
        mock_logger.record_rejected.assert_called_once_with(
            "order", 0, "order card has no order id"
        )

    def test_unreadable_card_skipped(self) -> None:
        """A card that fails mid-parse is logged and the page continues."""
        # input
        order_ids = [f"203-000000{n}-100000{n}" for n in range(1, 4)]
        html = order_list_page([order_card(order_id) for order_id in order_ids])
        document = unreadable_document(html, order_ids[1])
        mock_logger = MagicMock(spec=AmazonExtractionLogger)
        extractor = OrderListExtractor(document, StrategyRunner(), mock_logger)

        # act
        headers = _run_async(extractor.extract("uk"))

        # assert
        assert [header.id for header in headers] == [order_ids[0], order_ids[2]]
        mock_logger.record_failed.assert_called_once()
        kind, index, error = mock_logger.record_failed.call_args.args
        assert (kind, index) == ("order", 1)
        assert isinstance(error, RuntimeError)

    def test_no_cards(self) -> None:
        # input
        document = HtmlDocument.from_html("<html><body><p>Nothing</p></body></html>")
        mock_logger = MagicMock(spec=AmazonExtractionLogger)
        extractor = OrderListExtractor(document, StrategyRunner(), mock_logger)

        # act
        headers = _run_async(extractor.extract("uk"))

        # assert
        assert headers == []
        mock_logger.no_cards_found.assert_called_once()


class TestPagerHelpers:
    """Tests for order count and next page detection."""

    def test_expected_count_and_next(self) -> None:
        # input
        document = HtmlDocument.from_html(
            order_list_page([order_card()], count=12, next_href="/next")
        )

        # act
        count = _run_async(expected_order_count(document))
        has_next = _run_async(has_next_page(document))

        # assert
        assert count == 12
        assert has_next

    def test_disabled_next(self) -> None:
        # input
        document = HtmlDocument.from_html(order_list_page([order_card()]))

        # act
        has_next = _run_async(has_next_page(document))

        # assert
        assert not has_next


class TestStatusMapping:
    """Tests for status inference."""

    def test_primary_text(self) -> None:
        # assert
        assert status_from_primary_text("Arriving Friday") is OrderStatus.SHIPPED
        assert status_from_primary_text("Delivered 3 May") is OrderStatus.DELIVERED
        assert status_from_primary_text("Cancelled") is OrderStatus.CANCELLED
        assert status_from_primary_text("Preparing for dispatch") is (
            OrderStatus.PROCESSING
        )

    def test_card_text_defaults_to_delivered(self) -> None:
        # assert
        assert status_from_card_text("Order placed 1 May") is OrderStatus.DELIVERED
        assert status_from_card_text("Refund issued") is OrderStatus.REFUNDED


class TestOrderListPages:
    """Tests for crawling the order list."""

    def test_three_pages(self) -> None:
        # input
        first_url = order_list_url("uk", year=2024)
        second_url = "https://www.amazon.co.uk/your-orders/orders?startIndex=10"
        third_url = "https://www.amazon.co.uk/your-orders/orders?startIndex=20"
        ids = [f"203-000000{n}-000000{n}" for n in range(1, 6)]
        pages = {
            first_url: order_list_page(
                [order_card(ids[0]), order_card(ids[1])],
                count=5,
                next_href="/your-orders/orders?startIndex=10",
            ),
            second_url: order_list_page(
                [order_card(ids[2]), order_card(ids[3])],
                next_href="/your-orders/orders?startIndex=20",
            ),
            third_url: order_list_page([order_card(ids[4])]),
        }
        document = HtmlDocument(pages)
        source = OrderListPages(document, StrategyRunner(), "uk", year=2024)

        # act
        result = _run_async(CrawlController().paginate(source, header_key))

        # assert
        assert len(result.records) == 5
        assert result.iterations == 3
        assert result.stop_reason is StopReason.NO_NEXT_PAGE
        assert source.expected_count == 5
        assert document.visits[0] == first_url
