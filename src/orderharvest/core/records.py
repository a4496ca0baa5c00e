"""Typed records produced by the extractors."""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from orderharvest.core.address import MAX_ADDRESS_LINES
from orderharvest.core.money import Money


class OrderStatus(str, Enum):
    """Normalized order status code."""

    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    UNKNOWN = "unknown"


class DeliveryState(str, Enum):
    DELIVERED = "delivered"
    NOT_DELIVERED = "not_delivered"
    UNKNOWN = "unknown"


class GiftCardEntryType(str, Enum):
    APPLIED = "applied"
    REFUND = "refund"
    ADDED = "added"
    RELOAD = "reload"
    PROMOTIONAL = "promotional"
    UNKNOWN = "unknown"


class PaymentMethod(BaseModel):
    """Card or wallet used to pay for an order."""

    type: str
    last_four: str | None = None


class Payment(BaseModel):
    """A single payment line shown on an order or invoice."""

    method: str
    last_four: str | None = None
    amount: Money | None = None
    date: dt.date | None = None


def _is_empty(value: Any) -> bool:
    if value is None or value is OrderStatus.UNKNOWN:
        return True
    if isinstance(value, str | list | tuple | dict):
        return len(value) == 0
    return False


def _is_unset(value: Any) -> bool:
    if isinstance(value, Money):
        return value.is_zero
    return _is_empty(value)


class OrderHeader(BaseModel):
    """An order as discovered on the order list or detail page.

    Created once per discovered order. Later phases (invoice, detail page)
    only fill fields that are still empty; see ``fill_missing``.
    """

    id: str
    date: dt.date | None = None
    total: Money
    status: OrderStatus = OrderStatus.UNKNOWN
    status_label: str = ""
    detail_url: str
    region: str
    platform: str = "amazon"

    subtotal: Money | None = None
    shipping: Money | None = None
    shipping_refund: Money | None = None
    tax: Money | None = None
    vat: Money | None = None
    gst: Money | None = None
    pst: Money | None = None
    promotion: Money | None = None
    gift: Money | None = None
    refund: Money | None = None
    grand_total: Money | None = None

    recipient: str | None = None
    shipping_address: list[str] = Field(default_factory=list)
    payment_method: PaymentMethod | None = None
    payments: list[Payment] = Field(default_factory=list)
    item_count: int | None = None
    subscribe_and_save: str | None = None
    invoice_url: str | None = None

    @field_validator("shipping_address")
    @classmethod
    def _cap_address(cls, lines: list[str]) -> list[str]:
        return lines[:MAX_ADDRESS_LINES]

    @property
    def order_id(self) -> str:
        return self.id

    @property
    def currency(self) -> str:
        return self.total.currency

    @property
    def is_cancelled(self) -> bool:
        return self.status is OrderStatus.CANCELLED

    def fill_missing(self, **values: Any) -> list[str]:
        """Fill empty fields from a later, lower-priority source.

        A field that already holds a value is never overwritten, and empty
        incoming values are ignored. Zero Money counts as unset, so a total
        the list page could not read is filled from a later page.

        Returns:
            Names of the fields that were filled.
        """
        filled: list[str] = []
        for name, value in values.items():
            if name not in type(self).model_fields:
                msg = f"OrderHeader has no field {name!r}"
                raise AttributeError(msg)
            if _is_empty(value) or not _is_unset(getattr(self, name)):
                continue
            if name == "shipping_address":
                value = list(value)[:MAX_ADDRESS_LINES]
            setattr(self, name, value)
            filled.append(name)
        return filled


class LineItem(BaseModel):
    """One purchased product line within an order."""

    id: str
    asin: str | None = None
    name: str
    quantity: int = 1
    unit_price: Money
    total_price: Money
    url: str = ""
    image_url: str | None = None
    condition: str | None = None
    seller: str | None = None
    supplied_by: str | None = None
    subscription_frequency: str | None = None
    source: str = ""
    order_header: OrderHeader = Field(exclude=True, repr=False)


class Shipment(BaseModel):
    """A group of items that travel together."""

    shipment_id: str
    order_header: OrderHeader = Field(exclude=True, repr=False)
    items: list[LineItem] = Field(default_factory=list)
    delivery_state: DeliveryState = DeliveryState.UNKNOWN
    status: str = ""
    tracking_id: str | None = None
    tracking_link: str | None = None
    carrier: str | None = None
    payment_amount: Money | None = None
    refund: Money | None = None


class PaymentTransaction(BaseModel):
    """A charge or refund against a payment instrument."""

    date: dt.date
    order_ids: list[str] = Field(default_factory=list)
    vendor: str = ""
    card_info: str = ""
    amount: Money
    status: str | None = None
    source: str = ""

    @field_validator("order_ids")
    @classmethod
    def _unique_sorted(cls, order_ids: list[str]) -> list[str]:
        return sorted({order_id for order_id in order_ids if order_id})


class GiftCardLedgerEntry(BaseModel):
    """One row of the gift card balance history."""

    date: dt.date
    description: str
    amount: Money
    closing_balance: Money
    type: GiftCardEntryType = GiftCardEntryType.UNKNOWN
    order_id: str | None = None
    claim_code: str | None = None
    serial_number: str | None = None
    region: str | None = None


class GiftCardSummary(BaseModel):
    """Current balance plus the ledger entries read for it."""

    balance: Money | None = None
    entries: list[GiftCardLedgerEntry] = Field(default_factory=list)


def is_fully_delivered(shipments: list[Shipment]) -> bool:
    """True when there is at least one shipment and every one is delivered."""
    return bool(shipments) and all(
        shipment.delivery_state is DeliveryState.DELIVERED for shipment in shipments
    )


def tracking_ids(shipments: list[Shipment]) -> list[str]:
    return [shipment.tracking_id for shipment in shipments if shipment.tracking_id]
