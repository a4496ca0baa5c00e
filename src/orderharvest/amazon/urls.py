"""URL builders for the Amazon storefront pages the extractors read."""

from __future__ import annotations

from urllib.parse import urlencode

from orderharvest.core.regions import Region, get_region_by_code

ORDERS_PER_PAGE = 10


def _region(region: str) -> Region:
    config = get_region_by_code(region)
    if config is None:
        msg = f"Unknown region: {region}"
        raise ValueError(msg)
    return config


def absolute_url(region: str, href: str) -> str:
    """Resolve a site-relative link against the region's storefront."""
    if not href or href.startswith("http"):
        return href
    if not href.startswith("/"):
        href = f"/{href}"
    return f"{_region(region).base_url}{href}"


def order_list_url(
    region: str,
    *,
    year: int | None = None,
    months: int | None = None,
    start_index: int = 0,
) -> str:
    """Order history page, optionally filtered to a year or trailing months."""
    config = _region(region)
    params: dict[str, str] = {}
    if year:
        params["timeFilter"] = f"year-{year}"
    elif months:
        params["timeFilter"] = f"months-{months}"
    if start_index:
        params["startIndex"] = str(start_index)
    params["language"] = config.language
    return f"{config.base_url}/your-orders/orders?{urlencode(params)}"


def order_history_url(region: str) -> str:
    return f"{_region(region).base_url}/gp/css/order-history"


def order_detail_url(region: str, order_id: str) -> str:
    base_url = _region(region).base_url
    return f"{base_url}/gp/your-account/order-details?orderID={order_id}"


def invoice_url(region: str, order_id: str) -> str:
    return f"{_region(region).base_url}/gp/css/summary/print.html?orderID={order_id}"


def transactions_page_url(region: str) -> str:
    return f"{_region(region).base_url}/cpe/yourpayments/transactions"


def gift_card_url(region: str) -> str:
    return f"{_region(region).base_url}/gc/balance"


def sign_in_url(region: str) -> str:
    return f"{_region(region).base_url}/ap/signin"


def product_url(region: str, asin: str) -> str:
    return f"{_region(region).base_url}/dp/{asin}"


def is_sign_in_url(url: str) -> bool:
    return "signin" in url.lower()
