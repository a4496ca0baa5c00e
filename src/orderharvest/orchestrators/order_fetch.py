"""Order fetch orchestration: list orders, then enrich each one.

Batch mode crawls the order list and enriches every header through the
invoice (fast path) or the order detail page (detailed path). Single mode
skips the list and works from one order id. Per-order failures never end
a batch; they are collected as ``RecordError`` entries and the header is
returned as a partial record.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field, replace
import datetime as dt
import time
from typing import Any

from orderharvest.amazon.gift_card import GiftCardPages, finalize_entries
from orderharvest.amazon.invoice import InvoiceExtractor, invoice_line_items
from orderharvest.amazon.items import ItemExtractor
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_details import (
    extract_order_details,
    extract_order_header,
)
from orderharvest.amazon.order_list import OrderListPages
from orderharvest.amazon.session import require_signed_in
from orderharvest.amazon.shipments import ShipmentExtractor
from orderharvest.amazon.transactions import OrderTransactionExtractor
from orderharvest.amazon.transactions_page import (
    TransactionsFeed,
    finalize_transactions,
)
from orderharvest.amazon.urls import order_detail_url
from orderharvest.core.config import ExtractionConfig, ItemCountCheck
from orderharvest.core.dedup import gift_card_key, header_key, transaction_key
from orderharvest.core.document import DocumentAccessor
from orderharvest.core.errors import AuthenticationRequired, BatchAbort, RecordError
from orderharvest.core.money import Money
from orderharvest.core.records import (
    GiftCardSummary,
    LineItem,
    OrderHeader,
    PaymentTransaction,
    Shipment,
)
from orderharvest.core.regions import (
    currency_for_region,
    get_region_by_code,
    get_region_codes,
)
from orderharvest.core.strategy import StrategyRunner
from orderharvest.crawl.controller import (
    CrawlController,
    CrawlResult,
    ProgressCallback,
    ProgressEvent,
    StopReason,
)
from orderharvest.orchestrators.logger import OrderFetchLogger

# Seconds per order used for the ETA until the first order completes.
INVOICE_SECONDS_PER_ORDER = 1.5
DETAIL_SECONDS_PER_ORDER = 3.0


@dataclass
class FetchOrdersRequest:
    """What to fetch.

    Setting ``order_id`` selects single-order mode; ``year``, ``months`` and
    ``max_orders`` only apply to batch mode.
    """

    region: str = "us"
    order_id: str | None = None
    year: int | None = None
    months: int | None = None
    max_orders: int | None = None
    include_items: bool = True
    include_shipments: bool = False
    include_transactions: bool = False
    fetch_tracking_numbers: bool = False
    use_invoice: bool = True

    @property
    def needs_detail_page(self) -> bool:
        return self.include_shipments or self.include_transactions

    @property
    def enriches(self) -> bool:
        return self.include_items or self.needs_detail_page


@dataclass
class FetchOrdersResult:
    orders: list[OrderHeader] = field(default_factory=list)
    items: list[LineItem] = field(default_factory=list)
    shipments: list[Shipment] = field(default_factory=list)
    transactions: list[PaymentTransaction] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)
    expected_count: int | None = None
    stop_reason: StopReason | None = None

    @property
    def succeeded(self) -> bool:
        return not self.errors


@dataclass
class FetchTransactionsResult:
    transactions: list[PaymentTransaction] = field(default_factory=list)
    errors: list[RecordError] = field(default_factory=list)
    stop_reason: StopReason | None = None


@dataclass
class FetchGiftCardsResult:
    summary: GiftCardSummary = field(default_factory=GiftCardSummary)
    errors: list[RecordError] = field(default_factory=list)
    stop_reason: StopReason | None = None


@dataclass
class _Enrichment:
    items: list[LineItem] = field(default_factory=list)
    shipments: list[Shipment] = field(default_factory=list)
    transactions: list[PaymentTransaction] = field(default_factory=list)


@dataclass
class _Stage:
    """Name of the enrichment step in progress, for error reports."""

    name: str = "enrich"


class EtaEstimator:
    """Running estimate of the time left in a batch.

    ``(elapsed / processed) x remaining`` once at least one record is done;
    before that, ``seed_seconds x remaining``.
    """

    def __init__(
        self,
        total: int,
        seed_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._total = total
        self._seed_seconds = seed_seconds
        self._clock = clock
        self._started = clock()

    def remaining_seconds(self, processed: int) -> float:
        remaining = max(self._total - processed, 0)
        if processed <= 0:
            return self._seed_seconds * remaining
        elapsed = self._clock() - self._started
        return elapsed / processed * remaining


def item_count_accepted(
    found: int, expected: int | None, check: ItemCountCheck
) -> bool:
    """Whether the fast path's item count is good enough to skip the detail page.

    No items is never accepted. An unknown or zero expected count accepts
    any non-empty result.
    """
    if found == 0:
        return False
    if check is ItemCountCheck.IGNORE or not expected:
        return True
    if check is ItemCountCheck.EXACT:
        return found == expected
    return found >= expected


def _invalid_region_error(region: str) -> RecordError:
    return RecordError(
        "request",
        "region",
        f"Unknown region {region!r}. Valid regions: {', '.join(get_region_codes())}",
    )


def _crawl_errors(crawl: CrawlResult[Any], stage: str) -> list[RecordError]:
    if crawl.error is None:
        return []
    return [RecordError("batch", stage, str(crawl.error))]


class OrderFetcher:
    """Fetches orders, transactions and gift card history through one accessor."""

    def __init__(
        self,
        document: DocumentAccessor,
        *,
        config: ExtractionConfig | None = None,
        runner: StrategyRunner | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
        logger: OrderFetchLogger | None = None,
        extraction_logger: AmazonExtractionLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize fetcher.

        Args:
            document: Accessor for the signed-in browsing session
            config: Extraction tunables (defaults to ``ExtractionConfig()``)
            runner: Strategy runner shared by every extractor
            on_progress: Receives list crawl and enrichment progress events
            cancel_event: Set to stop between pages or between orders
            logger: Logger for fetch milestones
            extraction_logger: Logger passed to the page extractors
            clock: Monotonic clock used for the ETA
        """
        self._document = document
        self._config = config or ExtractionConfig()
        self._runner = runner or StrategyRunner(self._config.probe_timeout)
        self._on_progress = on_progress
        self._cancel_event = cancel_event
        self._logger = logger or OrderFetchLogger()
        self._extraction_logger = extraction_logger or AmazonExtractionLogger()
        self._clock = clock

        extraction_logger = self._extraction_logger
        self._invoices = InvoiceExtractor(document, self._runner, extraction_logger)
        self._items = ItemExtractor(document, self._runner, extraction_logger)
        self._shipments = ShipmentExtractor(document, self._runner, extraction_logger)
        self._transactions = OrderTransactionExtractor(
            document, self._runner, extraction_logger
        )

    def _controller(self) -> CrawlController:
        return CrawlController(
            on_progress=self._on_progress, cancel_event=self._cancel_event
        )

    @property
    def _cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def _report(self, message: str, current: int, total: int | None) -> None:
        if self._on_progress is not None:
            self._on_progress(ProgressEvent(message, current, total))

    async def _auth_check(self) -> None:
        await require_signed_in(self._document)

    async def fetch(self, request: FetchOrdersRequest) -> FetchOrdersResult:
        """Fetch orders as described by ``request``.

        Returns:
            FetchOrdersResult with every order found, enriched where possible,
            and one error per order that could not be enriched.

        Raises:
            AuthenticationRequired: If the session is not signed in
        """
        if get_region_by_code(request.region) is None:
            return FetchOrdersResult(errors=[_invalid_region_error(request.region)])

        region = request.region.lower()
        request = replace(request, region=region)
        if request.order_id:
            self._logger.fetch_start(region, "single")
            result = await self._fetch_single(request)
        else:
            self._logger.fetch_start(region, "batch")
            result = await self._fetch_batch(request)
        self._logger.fetch_complete(
            len(result.orders), len(result.items), len(result.errors)
        )
        return result

    async def _fetch_single(self, request: FetchOrdersRequest) -> FetchOrdersResult:
        assert request.order_id is not None
        result = FetchOrdersResult()
        region = request.region
        detail_url = order_detail_url(region, request.order_id)
        header = OrderHeader(
            id=request.order_id,
            total=Money.zero(currency_for_region(region)),
            detail_url=detail_url,
            region=region,
        )
        stage = _Stage("detail")
        try:
            await self._document.navigate(detail_url)
            await require_signed_in(self._document)
            from_page = await extract_order_header(
                self._document, region, self._runner, expected_id=request.order_id
            )
            if from_page is not None:
                header = from_page
            stage.name = "enrich"
            enrichment = await self._enrich(header, request, stage)
        except AuthenticationRequired:
            raise
        except Exception as e:
            self._record_failure(result, RecordError(header.id, stage.name, str(e)))
        else:
            self._collect(result, header, enrichment)
        result.orders.append(header)
        return result

    async def _fetch_batch(self, request: FetchOrdersRequest) -> FetchOrdersResult:
        result = FetchOrdersResult()
        pages = OrderListPages(
            self._document,
            self._runner,
            request.region,
            year=request.year,
            months=request.months,
            logger=self._extraction_logger,
        )
        try:
            crawl = await self._controller().paginate(
                pages,
                header_key,
                max_records=request.max_orders,
                auth_check=self._auth_check,
            )
        except BatchAbort as e:
            self._abort(result, "order_list", e)
            return result

        headers = crawl.records
        result.orders = headers
        result.expected_count = pages.expected_count
        result.stop_reason = crawl.stop_reason
        self._logger.orders_listed(len(headers), pages.expected_count)
        if crawl.error is not None:
            self._abort(result, "order_list", crawl.error)
            return result
        if not request.enriches:
            return result

        seed = (
            INVOICE_SECONDS_PER_ORDER
            if request.use_invoice and not request.needs_detail_page
            else DETAIL_SECONDS_PER_ORDER
        )
        eta = EtaEstimator(len(headers), seed, self._clock)
        for index, header in enumerate(headers):
            if self._cancelled:
                break
            if header.status.value in self._config.skip_statuses:
                self._logger.order_skipped(header.id, header.status.value)
            else:
                stage = _Stage()
                try:
                    enrichment = await self._enrich(header, request, stage)
                except AuthenticationRequired:
                    raise
                except BatchAbort as e:
                    self._abort(result, header.id, e)
                    return result
                except Exception as e:
                    error = RecordError(header.id, stage.name, str(e))
                    self._record_failure(result, error)
                else:
                    self._collect(result, header, enrichment)

            processed = index + 1
            remaining = eta.remaining_seconds(processed)
            self._logger.progress(processed, len(headers), remaining)
            self._report(
                f"Processed order {header.id} (~{remaining:.0f}s remaining)",
                processed,
                len(headers),
            )
        return result

    async def _enrich(
        self, header: OrderHeader, request: FetchOrdersRequest, stage: _Stage
    ) -> _Enrichment:
        """Fill ``header`` and gather its items, shipments and transactions.

        The invoice is tried first unless disabled; the detail page is loaded
        when the invoice is unusable or shipments/transactions are wanted.
        """
        enrichment = _Enrichment()
        if request.include_items and request.use_invoice:
            stage.name = "invoice"
            invoice = await self._invoices.extract(header)
            if invoice is not None:
                header.fill_missing(**invoice.header_fields())
                items = invoice_line_items(invoice, header, self._extraction_logger)
                check = self._config.item_count_check
                if item_count_accepted(len(items), header.item_count, check):
                    enrichment.items = items
                else:
                    self._logger.fast_path_rejected(
                        header.id, len(items), header.item_count
                    )

        items_missing = request.include_items and not enrichment.items
        if not (items_missing or request.needs_detail_page):
            return enrichment

        stage.name = "detail"
        await self._document.navigate(header.detail_url)
        details = await extract_order_details(self._document, header, self._runner)
        header.fill_missing(**details.header_fields())
        if details.grand_total is not None:
            header.fill_missing(total=details.grand_total)

        if items_missing:
            stage.name = "items"
            enrichment.items = await self._items.extract(header)
        if request.include_shipments:
            stage.name = "shipments"
            enrichment.shipments = await self._shipments.extract(
                header,
                enrichment.items,
                fetch_tracking_numbers=request.fetch_tracking_numbers,
            )
        if request.include_transactions:
            stage.name = "transactions"
            enrichment.transactions = await self._transactions.extract(header)
        return enrichment

    def _collect(
        self, result: FetchOrdersResult, header: OrderHeader, enrichment: _Enrichment
    ) -> None:
        result.items.extend(enrichment.items)
        result.shipments.extend(enrichment.shipments)
        result.transactions.extend(enrichment.transactions)
        self._logger.order_enriched(
            header.id,
            len(enrichment.items),
            len(enrichment.shipments),
            len(enrichment.transactions),
        )

    def _record_failure(self, result: FetchOrdersResult, error: RecordError) -> None:
        self._logger.record_failed(error)
        result.errors.append(error)

    def _abort(self, result: FetchOrdersResult, stage: str, error: BatchAbort) -> None:
        aggregate = RecordError("batch", stage, str(error))
        self._logger.batch_aborted(aggregate, len(result.orders))
        result.errors.append(aggregate)

    async def fetch_transactions(
        self,
        region: str,
        *,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
    ) -> FetchTransactionsResult:
        """Crawl the payment transactions feed, newest first.

        Raises:
            AuthenticationRequired: If the session is not signed in
        """
        if get_region_by_code(region) is None:
            return FetchTransactionsResult(errors=[_invalid_region_error(region)])
        feed = TransactionsFeed(
            self._document, self._runner, region.lower(), self._extraction_logger
        )
        try:
            crawl = await self._controller().scroll(
                feed,
                transaction_key,
                start_date=start_date,
                date_of=lambda transaction: transaction.date,
                max_iterations=self._config.max_scrolls,
                stability_threshold=self._config.stability_threshold,
                auth_check=self._auth_check,
            )
        except BatchAbort as e:
            error = RecordError("batch", "transactions", str(e))
            return FetchTransactionsResult(errors=[error])
        return FetchTransactionsResult(
            transactions=finalize_transactions(crawl.records, start_date, end_date),
            stop_reason=crawl.stop_reason,
            errors=_crawl_errors(crawl, "transactions"),
        )

    async def fetch_gift_cards(self, region: str) -> FetchGiftCardsResult:
        """Read the gift card balance and ledger, newest entry first.

        Raises:
            AuthenticationRequired: If the session is not signed in
        """
        if get_region_by_code(region) is None:
            return FetchGiftCardsResult(errors=[_invalid_region_error(region)])
        pages = GiftCardPages(
            self._document, self._runner, region.lower(), self._extraction_logger
        )
        try:
            crawl = await self._controller().paginate(
                pages,
                gift_card_key,
                max_pages=self._config.gift_card_max_pages,
                auth_check=self._auth_check,
            )
        except BatchAbort as e:
            error = RecordError("batch", "gift_cards", str(e))
            return FetchGiftCardsResult(errors=[error])
        return FetchGiftCardsResult(
            summary=GiftCardSummary(
                balance=pages.balance, entries=finalize_entries(crawl.records)
            ),
            stop_reason=crawl.stop_reason,
            errors=_crawl_errors(crawl, "gift_cards"),
        )
