"""Logging for strategy execution.

Separates logging logic from the strategy runner.
"""

from __future__ import annotations

import loguru
from loguru import logger


class StrategyLogger:
    """Handles all logging for probe attempts."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        """Initialize logger.

        Args:
            logger_instance: Logger instance to use (defaults to loguru.logger)
        """
        self._logger = logger_instance

    def probe_succeeded(self, label: str, strategy: str, attempt: int) -> None:
        self._logger.bind(label=label, strategy=strategy, attempt=attempt).debug(
            "{}: strategy {} succeeded (attempt {})", label, strategy, attempt
        )

    def probe_empty(self, label: str, strategy: str) -> None:
        self._logger.bind(label=label, strategy=strategy).debug(
            "{}: strategy {} found nothing", label, strategy
        )

    def probe_failed(self, label: str, strategy: str, error: BaseException) -> None:
        self._logger.bind(
            label=label, strategy=strategy, error=type(error).__name__
        ).debug("{}: strategy {} failed: {}", label, strategy, error)

    def probe_timed_out(self, label: str, strategy: str, timeout: float) -> None:
        self._logger.bind(label=label, strategy=strategy, timeout=timeout).debug(
            "{}: strategy {} timed out after {:.2f}s", label, strategy, timeout
        )

    def all_failed(self, label: str, attempts: int) -> None:
        self._logger.bind(label=label, attempts=attempts).debug(
            "{}: all {} strategies failed, using default", label, attempts
        )
