"""Order fetch orchestration."""

from __future__ import annotations

from orderharvest.orchestrators.order_fetch import (
    FetchGiftCardsResult,
    FetchOrdersRequest,
    FetchOrdersResult,
    FetchTransactionsResult,
    OrderFetcher,
)

__all__ = [
    "FetchGiftCardsResult",
    "FetchOrdersRequest",
    "FetchOrdersResult",
    "FetchTransactionsResult",
    "OrderFetcher",
]
