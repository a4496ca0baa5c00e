"""Account-wide payment transactions feed (Your Payments > Transactions).

The feed loads more rows as the page is scrolled, so it is exposed to the
crawl controller as a scroll source.
"""

from __future__ import annotations

from collections.abc import Iterable
import datetime as dt
import re

from orderharvest.amazon.items import LAYOUT_TIMEOUT
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_details import METHOD_NAME, METHOD_NUMBER
from orderharvest.amazon.patterns import find_order_ids
from orderharvest.amazon.transactions import (
    DATE_CONTAINER,
    LINE_ITEM,
    TRANSACTION_LINKS,
    parse_card_info,
    parse_transaction_text,
    signed_amount,
)
from orderharvest.amazon.urls import transactions_page_url
from orderharvest.core.dates import find_date, parse_date
from orderharvest.core.dedup import (
    RecordAccumulator,
    sort_by_date_desc,
    transaction_key,
)
from orderharvest.core.document import (
    DocumentAccessor,
    NodeHandle,
    ScrollableDocument,
    first_text,
)
from orderharvest.core.records import PaymentTransaction
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

FEED_READY = (
    f"{TRANSACTION_LINKS}, .transaction-date-container, .transactions-line-item"
)
GENERIC_ROWS = '.a-row, [class*="transaction"]'
SOURCE = "transactions_page"

_ORDER_ID_PARAM = re.compile(r"orderI[Dd]=([^&]+)")
_STATUS = re.compile(r"\b(Pending|Charged|Refunded|Completed)\b", re.IGNORECASE)


def filter_by_date_range(
    transactions: Iterable[PaymentTransaction],
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
) -> list[PaymentTransaction]:
    """Keep transactions dated within ``[start_date, end_date]``, both inclusive."""
    return [
        transaction
        for transaction in transactions
        if (start_date is None or transaction.date >= start_date)
        and (end_date is None or transaction.date <= end_date)
    ]


def finalize_transactions(
    transactions: Iterable[PaymentTransaction],
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
) -> list[PaymentTransaction]:
    """Dedupe, filter to the range and sort newest first."""
    unique = RecordAccumulator(transaction_key, transactions).records
    return sort_by_date_desc(
        filter_by_date_range(unique, start_date, end_date),
        lambda transaction: transaction.date,
    )


class TransactionsPageExtractor:
    """Reads the transactions currently rendered in the feed."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        region: str,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._currency = currency_for_region(region)
        self._logger = logger or AmazonExtractionLogger()

    async def extract(self) -> list[PaymentTransaction]:
        outcome = await self._runner.run(
            [
                Strategy("date_containers", self._date_containers, LAYOUT_TIMEOUT),
                Strategy("transaction_links", self._transaction_links, LAYOUT_TIMEOUT),
                Strategy("generic_rows", self._generic_rows, LAYOUT_TIMEOUT),
            ],
            [],
            label="transactions_page",
        )
        self._logger.transactions_extracted(len(outcome.value), outcome.strategy)
        return RecordAccumulator(transaction_key, outcome.value).records

    async def _date_containers(self) -> list[PaymentTransaction]:
        transactions: list[PaymentTransaction] = []
        current_date: dt.date | None = None
        for node in await self._document.query(f"{DATE_CONTAINER}, {LINE_ITEM}"):
            text = await self._document.read_text(node)
            classes = await self._document.read_attribute(node, "class") or ""
            if "transaction-date-container" in classes:
                current_date = find_date(text)
                continue
            if current_date is None or not find_order_ids(text):
                continue
            transaction = parse_transaction_text(
                text,
                currency=self._currency,
                date=current_date,
                source=SOURCE,
                unsigned_is_debit=True,
            )
            if transaction is not None:
                transactions.append(transaction)
        return transactions

    async def _transaction_links(self) -> list[PaymentTransaction]:
        transactions: list[PaymentTransaction] = []
        for link in await self._document.query(TRANSACTION_LINKS):
            transaction = await self._parse_link(link)
            if transaction is not None:
                transactions.append(transaction)
        return transactions

    async def _parse_link(self, link: NodeHandle) -> PaymentTransaction | None:
        document = self._document
        text = await document.read_text(link)
        spans = [
            " ".join((await document.read_text(span)).split())
            for span in await document.query('span[data-testid="text"]', link)
        ]
        row_date = (parse_date(spans[0]) if spans else None) or find_date(text)
        amount = signed_amount(text, self._currency, unsigned_is_debit=True)
        if row_date is None or amount is None or amount.is_zero:
            return None

        href = await document.read_attribute(link, "href") or ""
        from_href = _ORDER_ID_PARAM.search(href)
        order_ids = find_order_ids(text) or ([from_href.group(1)] if from_href else [])

        method = await first_text(document, METHOD_NAME, link)
        digits = await first_text(document, METHOD_NUMBER, link)
        card = parse_card_info(f"{method} {digits}" if method else text)
        status = _STATUS.search(text)
        return PaymentTransaction(
            date=row_date,
            order_ids=order_ids,
            vendor=spans[2] if len(spans) > 2 else card.vendor,
            card_info=card.card_info,
            amount=amount,
            status=status.group(1).capitalize() if status else None,
            source=SOURCE,
        )

    async def _generic_rows(self) -> list[PaymentTransaction]:
        transactions: list[PaymentTransaction] = []
        for row in await self._document.query(GENERIC_ROWS):
            text = await self._document.read_text(row)
            if not find_order_ids(text):
                continue
            transaction = parse_transaction_text(
                text, currency=self._currency, source=SOURCE, unsigned_is_debit=True
            )
            if transaction is not None:
                transactions.append(transaction)
        return transactions


class TransactionsFeed:
    """The transactions page as a scroll source for the crawl controller."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        region: str,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._region = region
        self._extractor = TransactionsPageExtractor(document, runner, region, logger)

    async def open(self) -> None:
        await self._document.navigate(
            transactions_page_url(self._region), wait_for=FEED_READY
        )

    async def extract_visible(self) -> list[PaymentTransaction]:
        return await self._extractor.extract()

    async def scroll_further(self) -> None:
        # Accessors without scrolling show a fixed page; the crawl then
        # ends through the stability counter.
        if isinstance(self._document, ScrollableDocument):
            await self._document.scroll_to_bottom()


async def extract_transactions_page(
    document: DocumentAccessor,
    region: str,
    runner: StrategyRunner,
    logger: AmazonExtractionLogger | None = None,
) -> list[PaymentTransaction]:
    """Transactions rendered on the page currently loaded, without scrolling."""
    return await TransactionsPageExtractor(document, runner, region, logger).extract()
