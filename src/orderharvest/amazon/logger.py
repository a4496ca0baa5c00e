"""Logging for the Amazon extractors.

Separates logging logic from the page parsing code.
"""

from __future__ import annotations

import loguru
from loguru import logger

from orderharvest.core.records import OrderHeader


class AmazonExtractionLogger:
    """Handles all logging for Amazon page extraction."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def cards_found(self, selector: str, count: int) -> None:
        self._logger.bind(selector=selector, count=count).debug(
            "Found {} order cards with {}", count, selector
        )

    def no_cards_found(self, url: str) -> None:
        self._logger.bind(url=url).debug("No order cards found on {}", url)

    def record_rejected(self, kind: str, index: int, reason: str) -> None:
        self._logger.bind(kind=kind, index=index).debug(
            "Dropped {} candidate {}: {}", kind, index, reason
        )

    def record_failed(self, kind: str, index: int, error: BaseException) -> None:
        self._logger.bind(kind=kind, index=index, error=type(error).__name__).warning(
            "Could not parse {} candidate {}: {}", kind, index, error
        )

    def header_extracted(self, header: OrderHeader) -> None:
        self._logger.bind(order_id=header.id, status=header.status.value).debug(
            "Order {}: {} {} [{}]",
            header.id,
            header.date,
            header.total.formatted,
            header.status_label or header.status.value,
        )

    def items_extracted(self, order_id: str, count: int, source: str | None) -> None:
        self._logger.bind(order_id=order_id, count=count, source=source).debug(
            "Order {}: {} items via {}", order_id, count, source or "no strategy"
        )

    def shipments_extracted(
        self, order_id: str, count: int, source: str | None
    ) -> None:
        self._logger.bind(order_id=order_id, count=count, source=source).debug(
            "Order {}: {} shipments via {}", order_id, count, source or "no strategy"
        )

    def tracking_page_failed(self, url: str, error: BaseException) -> None:
        self._logger.bind(url=url, error=type(error).__name__).debug(
            "Tracking page {} unavailable: {}", url, error
        )

    def invoice_redirected(self, order_id: str, url: str) -> None:
        self._logger.bind(order_id=order_id, url=url).warning(
            "Invoice for {} redirected to {}", order_id, url
        )

    def invoice_unavailable(self, order_id: str, reason: str) -> None:
        self._logger.bind(order_id=order_id).debug(
            "Invoice for {} unavailable: {}", order_id, reason
        )

    def invoice_extracted(
        self, order_id: str, items: int, payments: int, total: str
    ) -> None:
        self._logger.bind(order_id=order_id, items=items, payments=payments).debug(
            "Invoice {}: total={} items={} payments={}",
            order_id,
            total,
            items,
            payments,
        )

    def transactions_extracted(self, count: int, source: str | None) -> None:
        self._logger.bind(count=count, source=source).debug(
            "Extracted {} transactions via {}", count, source or "no strategy"
        )

    def gift_card_page(self, page_number: int, count: int) -> None:
        self._logger.bind(page=page_number, count=count).debug(
            "Gift card ledger page {}: {} entries", page_number, count
        )

    def auth_status(self, region: str, authenticated: bool, message: str) -> None:
        self._logger.bind(region=region, authenticated=authenticated).info(
            "Auth status for {}: {}", region, message
        )
