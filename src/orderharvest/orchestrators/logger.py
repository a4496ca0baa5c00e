"""Logging for the order fetch orchestrator.

Separates logging logic from the fetch flow.
"""

from __future__ import annotations

import loguru
from loguru import logger

from orderharvest.core.errors import RecordError


class OrderFetchLogger:
    """Handles all logging for order fetching with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def fetch_start(self, region: str, mode: str) -> None:
        """Log start of a fetch."""
        self._logger.bind(region=region, mode=mode).info(
            "Fetching Amazon orders for {} ({})", region, mode
        )

    def orders_listed(self, count: int, expected: int | None) -> None:
        self._logger.bind(count=count, expected=expected).info(
            "Order list crawl found {} orders (page reports {})",
            count,
            expected if expected is not None else "unknown",
        )

    def order_skipped(self, order_id: str, status: str) -> None:
        self._logger.bind(order_id=order_id, status=status).debug(
            "Skipping enrichment of {} ({})", order_id, status
        )

    def fast_path_rejected(
        self, order_id: str, found: int, expected: int | None
    ) -> None:
        """Log an invoice item count that failed the cross-check."""
        self._logger.bind(order_id=order_id, found=found, expected=expected).debug(
            "Invoice for {} has {} items, expected {}; using detail page",
            order_id,
            found,
            expected,
        )

    def order_enriched(
        self, order_id: str, items: int, shipments: int, transactions: int
    ) -> None:
        self._logger.bind(
            order_id=order_id,
            items=items,
            shipments=shipments,
            transactions=transactions,
        ).debug(
            "Order {}: {} items, {} shipments, {} transactions",
            order_id,
            items,
            shipments,
            transactions,
        )

    def record_failed(self, error: RecordError) -> None:
        self._logger.bind(
            record_id=error.record_id, stage=error.stage
        ).warning("Enrichment failed for {}", error)

    def batch_aborted(self, error: RecordError, kept: int) -> None:
        self._logger.bind(stage=error.stage, kept=kept).error(
            "Batch aborted ({}), keeping {} records", error.message, kept
        )

    def progress(self, processed: int, total: int, eta_seconds: float) -> None:
        self._logger.bind(processed=processed, total=total).debug(
            "Processed {}/{} orders, ~{:.0f}s remaining", processed, total, eta_seconds
        )

    def fetch_complete(self, orders: int, items: int, errors: int) -> None:
        """Log summary of a finished fetch."""
        self._logger.bind(orders=orders, items=items, errors=errors).info(
            "Fetch complete: {} orders, {} items, {} errors", orders, items, errors
        )
