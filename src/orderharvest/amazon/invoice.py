"""Printable invoice page, the fast path for enriching an order.

One invoice request yields amounts, recipient, payments and items, which
is far cheaper than the detail page and its tracking links.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import datetime as dt
import re
from typing import Any

from orderharvest.amazon.items import (
    CONDITION,
    FREQUENCY,
    ITEM_TITLE,
    LAYOUT_TIMEOUT,
    MERCHANT,
    PRODUCT_LINK,
    build_line_item,
)
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_details import (
    apply_region_taxes,
    charges_from_text,
    extract_payments,
    extract_recipient,
    extract_shipping_address,
    read_charge_summary,
)
from orderharvest.amazon.patterns import (
    extract_asin,
    extract_condition,
    extract_quantity,
    extract_seller,
    extract_subscription_frequency,
    first_int,
)
from orderharvest.amazon.session import is_sign_in_page
from orderharvest.amazon.urls import invoice_url
from orderharvest.core.address import split_address_lines
from orderharvest.core.dates import find_date
from orderharvest.core.dedup import RecordAccumulator
from orderharvest.core.document import (
    DocumentAccessor,
    NodeHandle,
    all_texts,
    first_text,
    page_text,
)
from orderharvest.core.errors import AuthenticationRequired, RecordRejected
from orderharvest.core.money import MONEY_PATTERN, Money, parse_money
from orderharvest.core.records import LineItem, OrderHeader, Payment, PaymentMethod
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

ERROR_BANNER = '[data-component="errorbanner"], .a-alert-error, .a-alert-info'
UNIT_PRICE = '[data-component="unitPrice"]'
QUANTITIES = '.od-item-view-qty, [data-component="quantity"]'
_ERROR_PHRASES = ("unable to load", "problem loading")
_REDIRECT_MARKERS = ("order-history", "your-orders")

_SHIP_TO = re.compile(
    r"(?:Ship(?:ping)? to|Deliver to|Dispatch to|Shipping Address)[:\s]*\n\s*([^\n]+)"
    r"((?:\n[^\n]+){0,5})",
    re.IGNORECASE,
)
_ORDER_DATE = re.compile(
    r"(?:Order Placed|Ordered on|Order date)[:\s]*([^\n]+)", re.IGNORECASE
)
_OF_QUANTITY = re.compile(r"^\s*(\d+)\s+of:", re.MULTILINE)
_TEXT_ASIN = re.compile(r"\b(B0[0-9A-Z]{8})\b")
_TOTAL_ROW = re.compile(r"^\s*(?:item\(s\) )?(?:sub)?total", re.IGNORECASE)
_MIN_NAME_LENGTH = 5


@dataclass
class InvoiceItem:
    """An item as listed on the invoice, before it is tied to an order."""

    name: str
    unit_price: Money
    quantity: int = 1
    asin: str | None = None
    href: str | None = None
    seller: str | None = None
    condition: str | None = None
    subscription_frequency: str | None = None


@dataclass
class InvoiceData:
    order_id: str
    order_date: dt.date | None = None
    charges: dict[str, Money] = field(default_factory=dict)
    recipient: str | None = None
    shipping_address: list[str] = field(default_factory=list)
    payments: list[Payment] = field(default_factory=list)
    items: list[InvoiceItem] = field(default_factory=list)

    @property
    def grand_total(self) -> Money | None:
        return self.charges.get("grand_total")

    def header_fields(self) -> dict[str, Any]:
        """Non-empty values keyed by ``OrderHeader`` field name."""
        values: dict[str, Any] = {
            **self.charges,
            "date": self.order_date,
            "recipient": self.recipient,
            "shipping_address": self.shipping_address,
            "payments": self.payments,
        }
        if self.payments:
            values["payment_method"] = PaymentMethod(
                type=self.payments[0].method, last_four=self.payments[0].last_four
            )
        return {name: value for name, value in values.items() if value}


def invoice_item_to_line_item(item: InvoiceItem, header: OrderHeader) -> LineItem:
    """Tie an invoice item to its order.

    Raises:
        RecordRejected: If the item has no name
    """
    return build_line_item(
        header,
        name=item.name,
        unit_price=item.unit_price,
        quantity=item.quantity,
        href=item.href,
        asin=item.asin,
        source="invoice",
        seller=item.seller,
        condition=item.condition,
        subscription_frequency=item.subscription_frequency,
    )


async def has_error_banner(document: DocumentAccessor) -> bool:
    """True when the page shows Amazon's "unable to load" alert."""
    for text in await all_texts(document, ERROR_BANNER):
        if any(phrase in text.lower() for phrase in _ERROR_PHRASES):
            return True
    return False


class InvoiceExtractor:
    """Loads and reads the printable invoice of one order."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._logger = logger or AmazonExtractionLogger()

    async def extract(self, header: OrderHeader) -> InvoiceData | None:
        """Navigate to the invoice of ``header`` and read it.

        Returns:
            None when the invoice redirected elsewhere or failed to load.

        Raises:
            AuthenticationRequired: If the invoice redirected to sign-in
            NavigationFailure: If the page could not be loaded
        """
        await self._document.navigate(invoice_url(header.region, header.id))
        current = self._document.current_url()
        if await is_sign_in_page(self._document):
            raise AuthenticationRequired(current)
        if any(marker in current for marker in _REDIRECT_MARKERS):
            self._logger.invoice_redirected(header.id, current)
            return None
        if await has_error_banner(self._document):
            self._logger.invoice_unavailable(header.id, "error banner shown")
            return None

        invoice = await self.read(header)
        self._logger.invoice_extracted(
            header.id,
            len(invoice.items),
            len(invoice.payments),
            invoice.grand_total.formatted if invoice.grand_total else "",
        )
        return invoice

    async def read(self, header: OrderHeader) -> InvoiceData:
        """Read the invoice page currently loaded."""
        document = self._document
        currency = currency_for_region(header.region)
        text = await page_text(document)

        async def charges_from_page_text() -> dict[str, Money]:
            return charges_from_text(text, currency)

        async def charge_rows() -> dict[str, Money]:
            return await read_charge_summary(document, currency)

        async def read_recipient() -> str:
            return await extract_recipient(document)

        async def shipping_address() -> list[str]:
            return await extract_shipping_address(document)

        async def read_payments() -> list[Payment]:
            return await extract_payments(document, self._runner)

        async def ship_to_block() -> tuple[str, list[str]] | None:
            match = _SHIP_TO.search(text)
            if match is None:
                return None
            return match.group(1).strip(), split_address_lines(match.group(2))

        values = await self._runner.merge_fields(
            {
                "charges": [
                    Strategy("charge_rows", charge_rows),
                    Strategy("charge_text", charges_from_page_text),
                ],
                "recipient": [Strategy("recipient", read_recipient)],
                "address": [
                    Strategy("address_markup", shipping_address)
                ],
                "ship_to": [Strategy("ship_to_text", ship_to_block)],
                "payments": [
                    Strategy("payments", read_payments)
                ],
            },
            defaults={"charges": {}, "address": [], "payments": []},
            label=f"invoice.{header.id}",
        )

        recipient: str | None = values["recipient"] or None
        address: list[str] = values["address"]
        if values["ship_to"] is not None:
            text_recipient, text_address = values["ship_to"]
            recipient = recipient or text_recipient
            address = address or text_address
        if recipient and address and address[0] == recipient:
            address = address[1:]

        date_line = _ORDER_DATE.search(text)
        return InvoiceData(
            order_id=header.id,
            order_date=find_date(date_line.group(1)) if date_line else None,
            charges=apply_region_taxes(values["charges"], header.region),
            recipient=recipient,
            shipping_address=address,
            payments=values["payments"],
            items=await self._items(header, text),
        )

    async def _items(self, header: OrderHeader, text: str) -> list[InvoiceItem]:
        currency = currency_for_region(header.region)
        probes = {
            "data_components": lambda: self._data_components(currency),
            "table_rows": lambda: self._table_rows(currency),
            "product_links": lambda: self._product_links(currency),
            "containers": lambda: self._containers(currency),
            "text_asins": lambda: self._text_asins(text, currency),
        }
        outcome = await self._runner.run(
            [Strategy(name, probe, LAYOUT_TIMEOUT) for name, probe in probes.items()],
            [],
            label=f"invoice_items.{header.id}",
        )
        return outcome.value

    async def _data_components(self, currency: str) -> list[InvoiceItem]:
        document = self._document
        titles = await document.query(ITEM_TITLE)
        if not titles:
            return []
        prices = await all_texts(document, f"{UNIT_PRICE} .a-offscreen")
        if not prices:
            prices = await all_texts(document, UNIT_PRICE)
        conditions = await all_texts(document, CONDITION)
        quantities = await all_texts(document, QUANTITIES)
        frequencies = await all_texts(document, FREQUENCY)
        seller = extract_seller(await first_text(document, MERCHANT))

        def at(values: list[str], index: int) -> str | None:
            return values[index] if index < len(values) else None

        items: list[InvoiceItem] = []
        for index, title in enumerate(titles):
            name = " ".join((await document.read_text(title)).split())
            href = await _link_href(document, title)
            items.append(
                InvoiceItem(
                    name=name,
                    unit_price=parse_money(at(prices, index), currency),
                    quantity=first_int(at(quantities, index)) or 1,
                    asin=extract_asin(href),
                    href=href,
                    seller=seller,
                    condition=extract_condition(at(conditions, index)),
                    subscription_frequency=extract_subscription_frequency(
                        at(frequencies, index)
                    ),
                )
            )
        return items

    async def _table_rows(self, currency: str) -> list[InvoiceItem]:
        items: list[InvoiceItem] = []
        for row in await self._document.query(
            'tr:has(a[href*="/dp/"]), tr:has(a[href*="/gp/product/"])'
        ):
            # Outer layout tables also contain the nested item rows.
            if await self._document.query("tr", row):
                continue
            text = await self._document.read_text(row)
            if _TOTAL_ROW.match(text):
                continue
            item = await self._item_from_container(row, text, currency)
            if item is not None:
                items.append(item)
        return items

    async def _product_links(self, currency: str) -> list[InvoiceItem]:
        items = RecordAccumulator(lambda item: f"{item.asin}:{item.name}")
        for link in await self._document.query(PRODUCT_LINK):
            name = " ".join((await self._document.read_text(link)).split())
            if len(name) < _MIN_NAME_LENGTH:
                continue
            href = await self._document.read_attribute(link, "href")
            items.add(
                [
                    InvoiceItem(
                        name=name,
                        unit_price=Money.zero(currency),
                        asin=extract_asin(href),
                        href=href,
                    )
                ]
            )
        return items.records

    async def _containers(self, currency: str) -> list[InvoiceItem]:
        items: list[InvoiceItem] = []
        for container in await self._document.query(
            'td:has(a[href*="/dp/"]), div.a-row:has(> a[href*="/dp/"])'
        ):
            text = await self._document.read_text(container)
            item = await self._item_from_container(container, text, currency)
            if item is not None:
                items.append(item)
        return RecordAccumulator(lambda item: item.asin or item.name, items).records

    async def _item_from_container(
        self, container: NodeHandle, text: str, currency: str
    ) -> InvoiceItem | None:
        name = ""
        href = None
        for link in await self._document.query(PRODUCT_LINK, container):
            name = " ".join((await self._document.read_text(link)).split())
            if name:
                href = await self._document.read_attribute(link, "href")
                break
        if not name:
            return None
        prices = MONEY_PATTERN.findall(text)
        of_quantity = _OF_QUANTITY.search(text)
        quantity = int(of_quantity.group(1)) if of_quantity else extract_quantity(text)
        return InvoiceItem(
            name=name,
            unit_price=(
                parse_money(prices[-1], currency) if prices else Money.zero(currency)
            ),
            quantity=quantity or 1,
            asin=extract_asin(href),
            href=href,
            seller=extract_seller(text),
            condition=extract_condition(text),
        )

    async def _text_asins(self, text: str, currency: str) -> list[InvoiceItem]:
        asins = list(dict.fromkeys(_TEXT_ASIN.findall(text)))
        return [
            InvoiceItem(
                name=f"Product {asin}", unit_price=Money.zero(currency), asin=asin
            )
            for asin in asins
        ]


async def _link_href(document: DocumentAccessor, node: NodeHandle) -> str | None:
    own = await document.read_attribute(node, "href")
    if own:
        return own
    links = await document.query("a", node)
    return await document.read_attribute(links[0], "href") if links else None


async def extract_invoice(
    document: DocumentAccessor,
    header: OrderHeader,
    runner: StrategyRunner,
    logger: AmazonExtractionLogger | None = None,
) -> InvoiceData | None:
    """Functional form of ``InvoiceExtractor.extract``."""
    return await InvoiceExtractor(document, runner, logger).extract(header)


def invoice_line_items(
    invoice: InvoiceData,
    header: OrderHeader,
    logger: AmazonExtractionLogger | None = None,
) -> list[LineItem]:
    """Line items for ``header`` from an invoice; nameless items are dropped."""
    logger = logger or AmazonExtractionLogger()
    items: list[LineItem] = []
    for index, item in enumerate(invoice.items):
        try:
            items.append(invoice_item_to_line_item(item, header))
        except RecordRejected as e:
            logger.record_rejected("invoice_item", index, str(e))
    return items
