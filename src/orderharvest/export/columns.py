"""Ordered column tables for flattening records into export rows."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
import datetime as dt
from enum import Enum
from typing import Any, Generic, TypeVar

from orderharvest.core.address import MAX_ADDRESS_LINES
from orderharvest.core.money import Money
from orderharvest.core.records import (
    DeliveryState,
    GiftCardLedgerEntry,
    LineItem,
    OrderHeader,
    PaymentTransaction,
    Shipment,
)

T = TypeVar("T")

CellValue = str | int


class ExportType(str, Enum):
    ORDERS = "orders"
    ITEMS = "items"
    SHIPMENTS = "shipments"
    TRANSACTIONS = "transactions"
    GIFT_CARDS = "gift-cards"


@dataclass(frozen=True, slots=True)
class Column(Generic[T]):
    """One output column: a stable key, a display header and a getter."""

    key: str
    header: str
    get_value: Callable[[T], CellValue]


def format_money(money: Money | None) -> str:
    """Render money for export; missing and zero amounts are blank."""
    if money is None or money.is_zero:
        return ""
    return money.formatted


def format_date(date: dt.date | None) -> str:
    return date.isoformat() if date else ""


def _address_line(header: OrderHeader, index: int) -> str:
    lines = header.shipping_address
    return lines[index] if index < len(lines) else ""


def _address_columns(
    header_of: Callable[[Any], OrderHeader],
) -> list[Column[Any]]:
    return [
        Column(
            f"address_line_{index + 1}",
            f"Address Line {index + 1}",
            lambda record, index=index: _address_line(header_of(record), index),
        )
        for index in range(MAX_ADDRESS_LINES)
    ]


def _delivered_label(state: DeliveryState) -> str:
    return {
        DeliveryState.DELIVERED: "Yes",
        DeliveryState.NOT_DELIVERED: "No",
    }.get(state, "Unknown")


def _own_header(header: OrderHeader) -> OrderHeader:
    return header


def _item_header(item: LineItem) -> OrderHeader:
    return item.order_header


ORDER_COLUMNS: list[Column[OrderHeader]] = [
    Column("order_id", "Order ID", lambda o: o.id),
    Column("date", "Order Date", lambda o: format_date(o.date)),
    Column("total", "Total", lambda o: format_money(o.total)),
    Column("status", "Status", lambda o: o.status_label),
    Column("item_count", "Items", lambda o: o.item_count or 0),
    *_address_columns(_own_header),
    Column(
        "subscribe_and_save", "Subscribe & Save", lambda o: o.subscribe_and_save or ""
    ),
    Column("platform", "Platform", lambda o: o.platform),
    Column("region", "Region", lambda o: o.region),
    Column("detail_url", "Order URL", lambda o: o.detail_url),
]

ITEM_COLUMNS: list[Column[LineItem]] = [
    Column("order_id", "Order ID", lambda i: i.order_header.id),
    Column("order_date", "Order Date", lambda i: format_date(i.order_header.date)),
    Column("asin", "ASIN", lambda i: i.asin or ""),
    Column("name", "Product Name", lambda i: i.name),
    Column("condition", "Condition", lambda i: i.condition or ""),
    Column("quantity", "Quantity", lambda i: i.quantity),
    Column("unit_price", "Unit Price", lambda i: format_money(i.unit_price)),
    Column("total_price", "Item Total", lambda i: format_money(i.total_price)),
    Column("seller", "Seller", lambda i: i.seller or ""),
    Column(
        "subscription_frequency",
        "Subscribe & Save",
        lambda i: i.subscription_frequency or "",
    ),
    Column(
        "order_subtotal",
        "Order Subtotal",
        lambda i: format_money(i.order_header.subtotal),
    ),
    Column(
        "order_shipping",
        "Order Shipping",
        lambda i: format_money(i.order_header.shipping),
    ),
    Column("order_tax", "Order Tax", lambda i: format_money(i.order_header.tax)),
    Column("order_vat", "Order VAT", lambda i: format_money(i.order_header.vat)),
    Column(
        "order_promotion",
        "Order Promotion",
        lambda i: format_money(i.order_header.promotion),
    ),
    Column("order_total", "Order Total", lambda i: format_money(i.order_header.total)),
    Column(
        "order_grand_total",
        "Order Grand Total",
        lambda i: format_money(i.order_header.grand_total),
    ),
    Column("order_status", "Order Status", lambda i: i.order_header.status_label),
    Column("recipient", "Recipient", lambda i: i.order_header.recipient or ""),
    *_address_columns(_item_header),
    Column(
        "payment_method",
        "Payment Method",
        lambda i: i.order_header.payment_method.type
        if i.order_header.payment_method
        else "",
    ),
    Column(
        "payment_last_four",
        "Card Last 4",
        lambda i: (
            i.order_header.payment_method.last_four or ""
            if i.order_header.payment_method
            else ""
        ),
    ),
    Column("product_url", "Product URL", lambda i: i.url),
    Column("image_url", "Image URL", lambda i: i.image_url or ""),
    Column("order_url", "Order URL", lambda i: i.order_header.detail_url),
    Column("region", "Region", lambda i: i.order_header.region),
]

SHIPMENT_COLUMNS: list[Column[Shipment]] = [
    Column("order_id", "Order ID", lambda s: s.order_header.id),
    Column("order_date", "Order Date", lambda s: format_date(s.order_header.date)),
    Column("shipment_id", "Shipment ID", lambda s: s.shipment_id),
    Column("status", "Status", lambda s: s.status),
    Column("delivered", "Delivered", lambda s: _delivered_label(s.delivery_state)),
    Column("tracking_id", "Tracking ID", lambda s: s.tracking_id or ""),
    Column("carrier", "Carrier", lambda s: s.carrier or ""),
    Column("tracking_link", "Tracking URL", lambda s: s.tracking_link or ""),
    Column("item_count", "Items in Shipment", lambda s: len(s.items)),
    Column("item_names", "Item Names", lambda s: "; ".join(i.name for i in s.items)),
    Column(
        "payment_amount",
        "Payment Amount",
        lambda s: format_money(s.payment_amount) or format_money(s.order_header.total),
    ),
    Column("refund", "Refund", lambda s: format_money(s.refund)),
    Column("region", "Region", lambda s: s.order_header.region),
]

TRANSACTION_COLUMNS: list[Column[PaymentTransaction]] = [
    Column("date", "Transaction Date", lambda t: format_date(t.date)),
    Column("order_ids", "Order ID(s)", lambda t: ", ".join(t.order_ids)),
    Column("vendor", "Payment Method", lambda t: t.vendor),
    Column("card_info", "Card Info", lambda t: t.card_info),
    Column("amount", "Amount", lambda t: format_money(t.amount)),
    Column("currency", "Currency", lambda t: t.amount.currency),
]

GIFT_CARD_COLUMNS: list[Column[GiftCardLedgerEntry]] = [
    Column("date", "Date", lambda g: format_date(g.date)),
    Column("description", "Description", lambda g: g.description),
    Column("type", "Type", lambda g: g.type.value),
    Column("amount", "Amount", lambda g: format_money(g.amount)),
    Column(
        "closing_balance", "Closing Balance", lambda g: format_money(g.closing_balance)
    ),
    Column("order_id", "Order ID", lambda g: g.order_id or ""),
    Column("claim_code", "Claim Code", lambda g: g.claim_code or ""),
    Column("serial_number", "Serial Number", lambda g: g.serial_number or ""),
    Column("currency", "Currency", lambda g: g.amount.currency),
    Column("region", "Region", lambda g: g.region or ""),
]

COLUMNS: dict[ExportType, Sequence[Column[Any]]] = {
    ExportType.ORDERS: ORDER_COLUMNS,
    ExportType.ITEMS: ITEM_COLUMNS,
    ExportType.SHIPMENTS: SHIPMENT_COLUMNS,
    ExportType.TRANSACTIONS: TRANSACTION_COLUMNS,
    ExportType.GIFT_CARDS: GIFT_CARD_COLUMNS,
}


def project(record: T, columns: Sequence[Column[T]]) -> list[CellValue]:
    """Return the record's values in column order."""
    return [column.get_value(record) for column in columns]


def column_headers(export_type: ExportType | str) -> list[str]:
    """Display headers for an export type.

    Raises:
        ValueError: If ``export_type`` is not a known export type
    """
    return [column.header for column in COLUMNS[ExportType(export_type)]]
