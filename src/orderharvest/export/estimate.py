"""Rough extraction time estimates, checked against common client timeouts."""

from __future__ import annotations

from dataclasses import dataclass, field
import math

# Seconds per order for each extraction mode.
LIST_ONLY_SECONDS = 0.5
INVOICE_SECONDS = 2.0
DETAIL_SECONDS = 4.0
SHIPMENT_SECONDS = 5.0

# Page loads: roughly 2 seconds per page of 10 orders.
PAGE_SIZE = 10
SECONDS_PER_PAGE = 2

# Request timeouts of typical tool-calling clients, in seconds.
CONSERVATIVE_TIMEOUT = 60
SHORT_CLIENT_TIMEOUT = 120
MEDIUM_CLIENT_TIMEOUT = 300
LONG_CLIENT_TIMEOUT = 600


@dataclass
class TimeEstimate:
    estimated_seconds: int
    estimated_minutes: int
    formatted: str
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def seconds_per_order(
    *,
    include_items: bool = False,
    include_shipments: bool = False,
    use_invoice: bool = True,
) -> float:
    if include_shipments:
        return SHIPMENT_SECONDS
    if not include_items:
        return LIST_ONLY_SECONDS
    return INVOICE_SECONDS if use_invoice else DETAIL_SECONDS


def format_duration(seconds: int) -> str:
    """``~N seconds`` under a minute, ``~N minutes`` under an hour, else ``~Hh Mm``."""
    if seconds < 60:
        return f"~{seconds} seconds"
    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return f"~{minutes} minutes"
    return f"~{minutes // 60}h {minutes % 60}m"


def estimate_extraction_time(
    order_count: int,
    *,
    include_items: bool = False,
    include_shipments: bool = False,
    use_invoice: bool = True,
) -> TimeEstimate:
    """Estimate how long fetching ``order_count`` orders will take.

    Args:
        order_count: Number of orders to fetch
        include_items: Whether line items are extracted
        include_shipments: Whether shipments are extracted (detail page)
        use_invoice: Whether items come from the invoice fast path

    Returns:
        TimeEstimate with warnings and suggested batch sizes when the
        estimate exceeds common client timeouts.
    """
    per_order = seconds_per_order(
        include_items=include_items,
        include_shipments=include_shipments,
        use_invoice=use_invoice,
    )
    overhead = math.ceil(order_count / PAGE_SIZE) * SECONDS_PER_PAGE
    seconds = math.ceil(order_count * per_order + overhead)
    minutes = math.ceil(seconds / 60)
    estimate = TimeEstimate(seconds, minutes, format_duration(seconds))

    if seconds <= CONSERVATIVE_TIMEOUT:
        return estimate
    if seconds > LONG_CLIENT_TIMEOUT:
        estimate.warnings.append(
            f"Estimated time ({minutes}min) exceeds most client timeouts"
        )
        estimate.recommendations.append(
            "Consider using max_orders to limit batch size (e.g., max_orders: 100)"
        )
        estimate.recommendations.append(
            "Process in yearly batches for large order histories"
        )
    elif seconds > MEDIUM_CLIENT_TIMEOUT:
        estimate.warnings.append(
            f"Estimated time ({minutes}min) may exceed some client timeouts"
        )
        estimate.recommendations.append(
            "If timeout occurs, try with max_orders: "
            f"{math.floor(MEDIUM_CLIENT_TIMEOUT / per_order)}"
        )
    elif seconds > SHORT_CLIENT_TIMEOUT:
        estimate.warnings.append(
            f"Estimated time ({minutes}min) may exceed a 2 minute client timeout"
        )
        estimate.recommendations.append(
            f"Consider max_orders: {math.floor(SHORT_CLIENT_TIMEOUT / per_order)}"
        )
    return estimate
