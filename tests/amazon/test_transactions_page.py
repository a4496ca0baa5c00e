"""Tests for the account-wide transactions feed."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any

from orderharvest.adapters.documents.html import HtmlDocument
from orderharvest.amazon.transactions_page import (
    TransactionsFeed,
    TransactionsPageExtractor,
    filter_by_date_range,
    finalize_transactions,
)
from orderharvest.core.dedup import transaction_key
from orderharvest.core.money import parse_money
from orderharvest.core.records import PaymentTransaction
from orderharvest.core.strategy import StrategyRunner
from orderharvest.crawl.controller import CrawlController, StopReason
from tests.amazon.fixtures import (
    TRANSACTIONS_URL,
    transaction_line,
    transactions_page,
)

FIRST_ORDER = "203-1234567-1234567"
REFUND_ORDER = "203-7654321-7654321"
OLDER_ORDER = "203-1111111-2222222"

NEWEST_GROUP = (
    "14 November 2024",
    [
        transaction_line("Visa ****1234", "-£25.99", FIRST_ORDER, "AMZNMktplace"),
        transaction_line("Visa ****1234", "+£12.00", REFUND_ORDER, "Amazon.co.uk"),
    ],
)
OLDER_GROUP = (
    "10 November 2024",
    [transaction_line("Mastercard ****9876", "-£5.00", OLDER_ORDER, "Amazon.co.uk")],
)


def _run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _transaction(day: int, amount: str, order_id: str) -> PaymentTransaction:
    return PaymentTransaction(
        date=date(2024, 11, day),
        order_ids=[order_id],
        amount=parse_money(amount),
    )


class TestTransactionsPageExtractor:
    """Tests for TransactionsPageExtractor."""

    def test_date_containers(self) -> None:
        # input
        html = transactions_page([NEWEST_GROUP, OLDER_GROUP])
        document = HtmlDocument.from_html(html, TRANSACTIONS_URL)
        extractor = TransactionsPageExtractor(document, StrategyRunner(), "uk")

        # act
        transactions = _run_async(extractor.extract())

        # assert
        assert len(transactions) == 3
        charge, refund, older = transactions
        assert charge.amount.amount == Decimal("-25.99")
        assert charge.vendor == "AMZNMktplace"
        assert charge.order_ids == [FIRST_ORDER]
        assert charge.date == date(2024, 11, 14)
        assert refund.amount.amount == Decimal("12.00")
        assert refund.vendor == "Amazon.co.uk"
        assert older.date == date(2024, 11, 10)
        assert older.card_info == "****9876"

    def test_line_without_order_id_skipped(self) -> None:
        # input
        stray = (
            '<div class="apx-transactions-line-item-component-container">'
            "<span>Visa ****1234</span><span>-£1.00</span></div>"
        )
        html = transactions_page([("14 November 2024", [stray])])
        document = HtmlDocument.from_html(html, TRANSACTIONS_URL)
        extractor = TransactionsPageExtractor(document, StrategyRunner(), "uk")

        # act
        transactions = _run_async(extractor.extract())

        # assert
        assert transactions == []


class TestTransactionsFeed:
    """Tests for scrolling the transactions feed."""

    def test_scrolls_until_stable(self) -> None:
        # input
        document = HtmlDocument(
            {
                TRANSACTIONS_URL: [
                    transactions_page([NEWEST_GROUP]),
                    transactions_page([NEWEST_GROUP, OLDER_GROUP]),
                ]
            }
        )
        feed = TransactionsFeed(document, StrategyRunner(), "uk")

        # act
        result = _run_async(
            CrawlController().scroll(feed, transaction_key, stability_threshold=2)
        )

        # assert
        assert len(result.records) == 3
        assert result.stop_reason is StopReason.STABLE


class TestFinalizeTransactions:
    """Tests for dedup, date filtering and ordering."""

    def test_dedupes_filters_and_sorts(self) -> None:
        # input
        transactions = [
            _transaction(10, "-£5.00", OLDER_ORDER),
            _transaction(14, "-£25.99", FIRST_ORDER),
            _transaction(14, "-£25.99", FIRST_ORDER),
            _transaction(1, "-£9.00", REFUND_ORDER),
        ]

        # act
        result = finalize_transactions(
            transactions, start_date=date(2024, 11, 5), end_date=date(2024, 11, 14)
        )

        # assert
        assert [transaction.date.day for transaction in result] == [14, 10]

    def test_range_is_inclusive(self) -> None:
        # input
        transactions = [_transaction(5, "-£1.00", FIRST_ORDER)]

        # act
        result = filter_by_date_range(
            transactions, date(2024, 11, 5), date(2024, 11, 5)
        )

        # assert
        assert len(result) == 1
