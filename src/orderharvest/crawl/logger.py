"""Logging for the crawl controller.

Separates logging logic from the pagination and scroll loops.
"""

from __future__ import annotations

import loguru
from loguru import logger


class CrawlLogger:
    """Handles all logging for pagination and infinite-scroll crawls."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def page_fetched(self, page: int, found: int, added: int, total: int) -> None:
        """Log one pagination step."""
        self._logger.bind(page=page, found=found, added=added, total=total).info(
            "Page {}: {} records found, {} new ({} total)", page, found, added, total
        )

    def scroll_pass(
        self, iteration: int, found: int, added: int, total: int, stable: int
    ) -> None:
        """Log one infinite-scroll iteration."""
        self._logger.bind(
            iteration=iteration, found=found, added=added, total=total, stable=stable
        ).debug(
            "Scroll {}: {} visible, {} new ({} total, stable for {})",
            iteration,
            found,
            added,
            total,
            stable,
        )

    def cap_reached(self, cap: int) -> None:
        self._logger.bind(cap=cap).info("Record cap of {} reached", cap)

    def navigation_failed(self, page: int, error: BaseException) -> None:
        self._logger.bind(page=page, error=type(error).__name__).warning(
            "Could not load page {}: {}", page, error
        )

    def aborted(self, iteration: int, total: int, error: BaseException) -> None:
        self._logger.bind(iteration=iteration, total=total).error(
            "Crawl aborted at iteration {} keeping {} records: {}",
            iteration,
            total,
            error,
        )

    def cancelled(self, iterations: int) -> None:
        self._logger.bind(iterations=iterations).info(
            "Crawl cancelled after {} iterations", iterations
        )

    def finished(self, reason: str, iterations: int, total: int) -> None:
        """Log the end of a crawl."""
        self._logger.bind(reason=reason, iterations=iterations, total=total).info(
            "Crawl finished ({}): {} records after {} iterations",
            reason,
            total,
            iterations,
        )
