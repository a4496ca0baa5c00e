"""Amazon page extractors, URLs and session checks."""

from orderharvest.amazon.gift_card import GiftCardExtractor, GiftCardPages
from orderharvest.amazon.invoice import InvoiceData, InvoiceExtractor, extract_invoice
from orderharvest.amazon.items import ItemExtractor, extract_items
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_details import (
    OrderDetails,
    extract_order_details,
    extract_order_header,
)
from orderharvest.amazon.order_list import (
    OrderListExtractor,
    OrderListPages,
    extract_order_headers,
)
from orderharvest.amazon.session import (
    AuthStatus,
    check_auth_status,
    ensure_signed_in,
    require_signed_in,
)
from orderharvest.amazon.shipments import ShipmentExtractor, extract_shipments
from orderharvest.amazon.transactions import (
    OrderTransactionExtractor,
    extract_order_transactions,
)
from orderharvest.amazon.transactions_page import (
    TransactionsFeed,
    TransactionsPageExtractor,
    extract_transactions_page,
)

__all__ = [
    # Extractors
    "GiftCardExtractor",
    "InvoiceExtractor",
    "ItemExtractor",
    "OrderListExtractor",
    "OrderTransactionExtractor",
    "ShipmentExtractor",
    "TransactionsPageExtractor",
    "extract_invoice",
    "extract_items",
    "extract_order_details",
    "extract_order_header",
    "extract_order_headers",
    "extract_order_transactions",
    "extract_shipments",
    "extract_transactions_page",
    # Crawl sources
    "GiftCardPages",
    "OrderListPages",
    "TransactionsFeed",
    # Results
    "InvoiceData",
    "OrderDetails",
    # Session
    "AuthStatus",
    "check_auth_status",
    "ensure_signed_in",
    "require_signed_in",
    "AmazonExtractionLogger",
]
