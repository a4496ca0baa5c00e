"""Ordered-fallback execution of extraction probes.

A probe is one heuristic attempt to read a field or record under one
assumed page layout. Probes for the same target are tried most specific
layout first; the first one that produces a non-empty value wins.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from orderharvest.core.errors import FieldMissing, ProbeFailure
from orderharvest.core.logger import StrategyLogger

T = TypeVar("T")

Probe = Callable[[], Awaitable[T | None]]


class AttemptStatus(str, Enum):
    SUCCEEDED = "succeeded"
    EMPTY = "empty"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class Strategy(Generic[T]):
    """A named probe with an optional timeout of its own."""

    name: str
    probe: Probe[T]
    timeout: float | None = None


@dataclass(frozen=True, slots=True)
class ProbeAttempt:
    strategy: str
    status: AttemptStatus
    error: ProbeFailure | None = None


@dataclass
class StrategyOutcome(Generic[T]):
    """Result of running a strategy chain."""

    value: T
    strategy: str | None = None
    attempts: list[ProbeAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.strategy is not None


def is_empty(value: Any) -> bool:
    """True for None, blank strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | set | frozenset | dict):
        return len(value) == 0
    return False


class StrategyRunner:
    """Runs probe chains with first-match-wins semantics.

    Each probe runs under its own timeout (the strategy's, else the runner
    default). A probe that raises, times out, or returns an empty value is
    an unsuccessful attempt and the next strategy is tried. A probe raising
    ``FieldMissing`` counts as empty rather than failed. Identical
    probes are never retried.
    """

    def __init__(
        self,
        default_timeout: float = 1.0,
        logger: StrategyLogger | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            default_timeout: Seconds allowed per probe when the strategy
                does not set its own timeout
            logger: Logger for attempt diagnostics
        """
        self._default_timeout = default_timeout
        self._logger = logger or StrategyLogger()

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    async def run(
        self,
        strategies: Sequence[Strategy[T]],
        default: T,
        *,
        label: str = "probe",
    ) -> StrategyOutcome[T]:
        """Run strategies in order and return the first non-empty result.

        Args:
            strategies: Probes ordered from most specific to most generic
            default: Value returned when every probe is unsuccessful
            label: Name of the field or record, for logging

        Returns:
            StrategyOutcome with the value, the winning strategy name (None
            when the default was used) and every attempt made.
        """
        attempts: list[ProbeAttempt] = []
        for index, strategy in enumerate(strategies, start=1):
            timeout = strategy.timeout or self._default_timeout
            try:
                value = await asyncio.wait_for(strategy.probe(), timeout=timeout)
            except TimeoutError:
                self._logger.probe_timed_out(label, strategy.name, timeout)
                failure = ProbeFailure(f"{strategy.name} timed out after {timeout}s")
                attempts.append(
                    ProbeAttempt(strategy.name, AttemptStatus.TIMED_OUT, failure)
                )
                continue
            except FieldMissing:
                self._logger.probe_empty(label, strategy.name)
                attempts.append(ProbeAttempt(strategy.name, AttemptStatus.EMPTY))
                continue
            except Exception as e:
                self._logger.probe_failed(label, strategy.name, e)
                failure = ProbeFailure(f"{strategy.name}: {e}")
                failure.__cause__ = e
                attempts.append(
                    ProbeAttempt(strategy.name, AttemptStatus.FAILED, failure)
                )
                continue

            if is_empty(value):
                self._logger.probe_empty(label, strategy.name)
                attempts.append(ProbeAttempt(strategy.name, AttemptStatus.EMPTY))
                continue

            self._logger.probe_succeeded(label, strategy.name, index)
            attempts.append(ProbeAttempt(strategy.name, AttemptStatus.SUCCEEDED))
            return StrategyOutcome(
                value=value,  # type: ignore[arg-type]
                strategy=strategy.name,
                attempts=attempts,
            )

        self._logger.all_failed(label, len(attempts))
        return StrategyOutcome(value=default, attempts=attempts)

    async def first(
        self,
        strategies: Sequence[Strategy[T]],
        default: T,
        *,
        label: str = "probe",
    ) -> T:
        """Like ``run`` but returns only the value."""
        outcome = await self.run(strategies, default, label=label)
        return outcome.value

    async def merge_fields(
        self,
        fields: Mapping[str, Sequence[Strategy[Any]]],
        defaults: Mapping[str, Any] | None = None,
        *,
        label: str = "fields",
    ) -> dict[str, Any]:
        """Extract several disjoint fields of one record concurrently.

        Each field has its own strategy chain. Chains run concurrently since
        every chain writes only to its own key; the merged dict is built
        after all of them settle.

        Args:
            fields: Strategy chain per field name
            defaults: Default per field name (None when absent)
            label: Record name, for logging

        Returns:
            Mapping of field name to extracted value or default.
        """
        defaults = defaults or {}
        names = list(fields)
        outcomes = await asyncio.gather(
            *(
                self.run(fields[name], defaults.get(name), label=f"{label}.{name}")
                for name in names
            )
        )
        return {
            name: outcome.value
            for name, outcome in zip(names, outcomes, strict=True)
        }
