"""Order detail page: charge summary, recipient, payments and invoice link."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import re
from typing import Any

from orderharvest.amazon.patterns import (
    classify_charge_label,
    extract_subscription_frequency,
    find_order_ids,
    parse_masked_card,
)
from orderharvest.amazon.urls import absolute_url
from orderharvest.core.address import split_address_lines
from orderharvest.core.dates import find_date
from orderharvest.core.document import (
    INNER_HTML,
    DocumentAccessor,
    NodeHandle,
    first_attribute,
    first_node,
    first_text,
    page_text,
)
from orderharvest.core.errors import FieldMissing
from orderharvest.core.money import MONEY_PATTERN, Money, parse_money
from orderharvest.core.records import OrderHeader, Payment, PaymentMethod
from orderharvest.core.regions import currency_for_region, get_region_by_code
from orderharvest.core.strategy import Strategy, StrategyRunner

CHARGE_ROW_SELECTORS = (
    '[data-component="chargeSummary"] .od-line-item-row',
    "#od-subtotals .a-row",
    "#subtotals-marketplace-table tr",
)
_LABEL_SELECTORS = (
    ".od-line-item-row-label",
    ".a-column:first-child",
    "td:first-child",
)
_VALUE_SELECTORS = (".od-line-item-row-content", ".a-span-last", "td:last-child")

_AMOUNT = r"(-?\s*(?:[A-Z]{3}\s*)?[$£€¥₹]?\s*\d[\d.,]*)"
_TEXT_CHARGES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("subtotal", re.compile(rf"Item\(?s?\)?\s*Subtotal:?\s*{_AMOUNT}", re.I)),
    ("shipping", re.compile(rf"Shipping\s*(?:&|and)?\s*Handling:?\s*{_AMOUNT}", re.I)),
    ("shipping", re.compile(rf"Postage\s*(?:&|and)?\s*Packing:?\s*{_AMOUNT}", re.I)),
    (
        "tax",
        re.compile(rf"Estimated\s*tax(?:\s*to\s*be\s*collected)?:?\s*{_AMOUNT}", re.I),
    ),
    ("tax", re.compile(rf"(?:Tax\s*Collected|Sales\s*Tax):?\s*{_AMOUNT}", re.I)),
    ("vat", re.compile(rf"(?:Estimated\s*)?VAT:?\s*{_AMOUNT}", re.I)),
    ("gst", re.compile(rf"\b(?:GST|HST)(?:/HST)?:?\s*{_AMOUNT}", re.I)),
    ("pst", re.compile(rf"\b(?:PST|QST|RST):?\s*{_AMOUNT}", re.I)),
    ("grand_total", re.compile(rf"Grand\s*Total:?\s*{_AMOUNT}", re.I)),
    (
        "grand_total",
        re.compile(
            rf"(?:Order\s*Total|Total\s*for\s*this\s*Order):?\s*{_AMOUNT}", re.I
        ),
    ),
    (
        "gift",
        re.compile(rf"Gift\s*(?:Card|Certificate)(?:\s*Amount)?:?\s*{_AMOUNT}", re.I),
    ),
    ("promotion", re.compile(rf"(?:Promotion\s*Applied|Discount):?\s*{_AMOUNT}", re.I)),
    ("refund", re.compile(rf"Refund(?:\s*Total)?:?\s*{_AMOUNT}", re.I)),
)

_CARD_NAMES = r"(Visa|Mastercard|Amex|American Express|Discover)"
_CARD_WITH_DIGITS = re.compile(rf"{_CARD_NAMES}.*?(\d{{4}})", re.IGNORECASE)
_CARD_ENDING = re.compile(
    rf"{_CARD_NAMES}\s*(?:ending\s*in|[•*]{{3,4}})\s*(\d{{4}})", re.IGNORECASE
)
_PAYMENT_METHOD_LINE = re.compile(r"Payment Method:\s*([A-Za-z0-9 /]*?)\s*\|")
_LAST_DIGITS = re.compile(r"Last digits:?\s*(\d{4})", re.IGNORECASE)
_ORDER_DATE_LINE = re.compile(
    r"(?:Ordered on|Order placed|Order date|Bestellt am|Commandé le)[:\s]*([^\n|]+)",
    re.IGNORECASE,
)

RECIPIENT_SELECTORS = (
    '[data-component="shippingAddress"] .displayAddressFullName',
    '[data-component="shippingAddress"] ul li:first-child',
    '[data-component="deliveryAddress"] .displayAddressFullName',
    '[data-component="deliveryAddress"] ul li:first-child',
    ".displayAddressFullName",
    "div.recipient span.trigger-text",
    "div.ship-to span.a-text-bold",
)
ADDRESS_SELECTORS = (
    '[data-component="shippingAddress"]',
    '[data-component="deliveryAddress"]',
    ".displayAddressDiv",
)
PAYMENT_WIDGET = '[data-component="viewPaymentPlanSummaryWidget"]'
METHOD_NAME = '[data-testid="method-details-name"]'
METHOD_NUMBER = '[data-testid="method-details-number"]'
SHIPPING_ADDRESS = '[data-component="shippingAddress"]'
INVOICE_LINK = 'a[href*="/invoice"], a[href*="_invoice"]'
DETAIL_ORDER_ID = (
    '[data-component="orderId"]',
    ".order-date-invoice-item bdi",
    "span.order-id",
)


@dataclass
class OrderDetails:
    """Fields read from a detail page, shaped like ``OrderHeader`` fields."""

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
    shipping_address: list[str] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    payment_method: PaymentMethod | None = None
    invoice_url: str | None = None
    subscribe_and_save: str | None = None

    def header_fields(self) -> dict[str, Any]:
        """Non-empty values keyed by ``OrderHeader`` field name."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return {name: value for name, value in values.items() if value}


def _split_label_value(text: str) -> tuple[str, str]:
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) >= 2:
        return " ".join(lines[:-1]), lines[-1]
    match = MONEY_PATTERN.search(text)
    if match is None:
        return text.strip(), ""
    start = match.start()
    if start > 0 and text[start - 1] in "-−":
        start -= 1
    return text[:start].strip(), text[start:].strip()


async def _row_label_value(
    document: DocumentAccessor, row: NodeHandle
) -> tuple[str, str]:
    label = await first_text(document, _LABEL_SELECTORS, row)
    value = await first_text(document, _VALUE_SELECTORS, row)
    if label and value and label != value:
        return label, value
    return _split_label_value(await document.read_text(row))


async def read_charge_summary(
    document: DocumentAccessor,
    currency: str,
    within: NodeHandle | None = None,
) -> dict[str, Money]:
    """Labelled amounts from the first charge summary layout present."""
    for selector in CHARGE_ROW_SELECTORS:
        rows = await document.query(selector, within)
        charges: dict[str, Money] = {}
        for row in rows:
            label, value = await _row_label_value(document, row)
            if not value:
                continue
            name = classify_charge_label(label)
            if name is None:
                is_total = label.lower().rstrip(": ") == "total"
                if is_total and "grand_total" not in charges:
                    name = "grand_total"
                else:
                    continue
            charges.setdefault(name, parse_money(value, currency))
        if charges:
            return charges
    return {}


def charges_from_text(text: str, currency: str) -> dict[str, Money]:
    """Labelled amounts found by regex in the page's plain text."""
    charges: dict[str, Money] = {}
    for name, pattern in _TEXT_CHARGES:
        if name in charges:
            continue
        match = pattern.search(text)
        if match:
            charges[name] = parse_money(match.group(1), currency)
    return charges


async def extract_recipient(document: DocumentAccessor) -> str:
    return await first_text(document, RECIPIENT_SELECTORS)


async def extract_shipping_address(document: DocumentAccessor) -> list[str]:
    for selector in ADDRESS_SELECTORS:
        node = await first_node(document, selector)
        if node is None:
            continue
        lines = split_address_lines(await document.read_attribute(node, INNER_HTML))
        if lines:
            return lines
    return []


def _payment_from_text(text: str) -> Payment | None:
    cleaned = " ".join(text.split())
    if not cleaned:
        return None
    card = parse_masked_card(cleaned)
    if card is not None:
        return Payment(method=card.type, last_four=card.last_four)
    match = _CARD_WITH_DIGITS.search(cleaned)
    if match:
        return Payment(method=match.group(1), last_four=match.group(2))
    if "gift" in cleaned.lower():
        return Payment(method="Amazon Gift Card")
    return Payment(method=cleaned[:50])


async def _payments_from_widget(document: DocumentAccessor) -> list[Payment]:
    widget = await first_node(document, PAYMENT_WIDGET)
    if widget is None:
        msg = "payment plan widget not present"
        raise FieldMissing(msg)
    name = await first_text(document, METHOD_NAME, widget)
    if name:
        digits = await first_text(document, METHOD_NUMBER, widget)
        return [Payment(method=name, last_four=digits.strip("•* ") or None)]

    payments: list[Payment] = []
    for box in await document.query(".pmts-payments-instrument-detail-box", widget):
        payment = _payment_from_text(await document.read_text(box))
        if payment is not None:
            payments.append(payment)
    return payments


async def _payments_from_text(document: DocumentAccessor) -> list[Payment]:
    text = await page_text(document)
    payments: list[Payment] = []

    method = _PAYMENT_METHOD_LINE.search(text)
    if method:
        digits = _LAST_DIGITS.search(text)
        payments.append(
            Payment(
                method=method.group(1).strip(),
                last_four=digits.group(1) if digits else None,
            )
        )

    for match in _CARD_ENDING.finditer(text):
        if not any(payment.last_four == match.group(2) for payment in payments):
            payments.append(Payment(method=match.group(1), last_four=match.group(2)))
    return payments


async def _payments_from_paystation(document: DocumentAccessor) -> list[Payment]:
    text = await first_text(document, ".paystationpaymentmethod, div.payment-method")
    payment = _payment_from_text(text)
    return [payment] if payment else []


async def extract_payments(
    document: DocumentAccessor, runner: StrategyRunner
) -> list[Payment]:
    return await runner.first(
        [
            Strategy("payment_widget", lambda: _payments_from_widget(document)),
            Strategy("payment_text", lambda: _payments_from_text(document)),
            Strategy("paystation", lambda: _payments_from_paystation(document)),
        ],
        [],
        label="payments",
    )


async def extract_invoice_url(document: DocumentAccessor, region: str) -> str | None:
    href = await first_attribute(document, INVOICE_LINK, "href")
    return absolute_url(region, href) if href else None


def apply_region_taxes(charges: dict[str, Money], region: str) -> dict[str, Money]:
    """Fill the generic ``tax`` field from the region's own tax fields."""
    if "tax" in charges:
        return charges
    config = get_region_by_code(region)
    tax_fields = config.tax_fields if config else ("tax",)
    for name in (*tax_fields, "vat", "gst"):
        if name in charges:
            return {**charges, "tax": charges[name]}
    return charges


async def extract_order_details(
    document: DocumentAccessor,
    header: OrderHeader,
    runner: StrategyRunner,
) -> OrderDetails:
    """Read the detail page currently loaded for ``header``."""
    currency = currency_for_region(header.region)

    async def charges_from_page_text() -> dict[str, Money]:
        return charges_from_text(await page_text(document), currency)

    async def charge_rows() -> dict[str, Money]:
        return await read_charge_summary(document, currency)

    async def recipient() -> str:
        return await extract_recipient(document)

    async def shipping_address() -> list[str]:
        return await extract_shipping_address(document)

    async def read_payments() -> list[Payment]:
        return await extract_payments(document, runner)

    async def invoice_link() -> str | None:
        return await extract_invoice_url(document, header.region)

    async def subscription() -> str | None:
        return extract_subscription_frequency(await page_text(document))

    values = await runner.merge_fields(
        {
            "charges": [
                Strategy("charge_rows", charge_rows),
                Strategy("charge_text", charges_from_page_text),
            ],
            "recipient": [Strategy("recipient", recipient)],
            "shipping_address": [
                Strategy("address_markup", shipping_address)
            ],
            "payments": [Strategy("payments", read_payments)],
            "invoice_url": [
                Strategy("invoice_link", invoice_link)
            ],
            "subscribe_and_save": [Strategy("auto_delivered", subscription)],
        },
        defaults={"charges": {}, "shipping_address": [], "payments": []},
        label=f"details.{header.id}",
    )

    payments: list[Payment] = values["payments"]
    details = OrderDetails(
        **apply_region_taxes(values["charges"], header.region),
        recipient=values["recipient"] or None,
        shipping_address=values["shipping_address"],
        payments=payments,
        invoice_url=values["invoice_url"],
        subscribe_and_save=values["subscribe_and_save"],
    )
    if payments:
        details.payment_method = PaymentMethod(
            type=payments[0].method, last_four=payments[0].last_four
        )
    return details


async def extract_order_header(
    document: DocumentAccessor,
    region: str,
    runner: StrategyRunner,
    *,
    expected_id: str | None = None,
) -> OrderHeader | None:
    """Build a header from the detail page currently loaded.

    ``expected_id`` wins whenever it appears anywhere on the page, so ids of
    related orders shown alongside cannot replace it. Returns None when the
    page shows no order id.
    """
    text = await page_text(document)
    order_id_text = await first_text(document, DETAIL_ORDER_ID)
    on_page = find_order_ids(order_id_text) + find_order_ids(text)
    if not on_page:
        return None
    order_id = on_page[0]
    if expected_id is not None and expected_id in on_page:
        order_id = expected_id

    date_line = _ORDER_DATE_LINE.search(text)
    order_date = find_date(date_line.group(1)) if date_line else None

    header = OrderHeader(
        id=order_id,
        date=order_date or find_date(text),
        total=Money.zero(currency_for_region(region)),
        detail_url=document.current_url(),
        region=region,
    )
    details = await extract_order_details(document, header, runner)
    if details.grand_total is not None:
        header.total = details.grand_total
    header.fill_missing(**details.header_fields())
    return header
