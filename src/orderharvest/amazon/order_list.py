"""Order cards on the order history page, plus its pagination controls."""

from __future__ import annotations

import datetime as dt
import re

from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_details import (
    METHOD_NAME,
    METHOD_NUMBER,
    PAYMENT_WIDGET,
    SHIPPING_ADDRESS,
    read_charge_summary,
)
from orderharvest.amazon.patterns import (
    HEX_ORDER_ID_PATTERN,
    ORDER_ID_PATTERN,
    extract_subscription_frequency,
    first_int,
    parse_masked_card,
)
from orderharvest.amazon.urls import (
    ORDERS_PER_PAGE,
    absolute_url,
    order_detail_url,
    order_list_url,
)
from orderharvest.core.address import split_address_lines
from orderharvest.core.dates import find_date
from orderharvest.core.dedup import RecordAccumulator, header_key
from orderharvest.core.document import (
    INNER_HTML,
    DocumentAccessor,
    NodeHandle,
    all_texts,
    first_attribute,
    first_node,
    first_text,
)
from orderharvest.core.errors import AuthenticationRequired, BatchAbort, RecordRejected
from orderharvest.core.money import MONEY_PATTERN, Money, find_money, parse_money
from orderharvest.core.records import OrderHeader, OrderStatus, PaymentMethod
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

CARD_SELECTORS = (
    '[data-component="orderCard"]',
    ".js-order-card",
    ".order-card",
    "#orderCard",
    ".a-box-group.order",
    ".order-info",
    ".a-box.order-info",
    '[class*="order-card"]',
    ".your-orders-content-container .a-box-group",
    ".order-row",
    '[data-testid="order-card"]',
)
ANY_CARD = ", ".join(CARD_SELECTORS)
NEXT_PAGE_SELECTOR = ".a-pagination .a-last:not(.a-disabled)"
ORDER_COUNT_SELECTOR = "span.num-orders"
ORDER_ID_SELECTORS = (
    '.yohtmlc-order-id span[dir="ltr"]',
    ".yohtmlc-order-id span",
    '[data-test-id="order-id"]',
)
ADDRESS_TEMPLATE = (
    'script[type="text/template"][id^="shipToData-shippingAddress-"]'
)
STATUS_SELECTORS = (
    ".delivery-box__primary-text",
    ".yohtmlc-shipment-status-primaryText",
    ".js-shipment-info-container .a-text-bold",
)

_LABELLED_ORDER_ID = re.compile(
    rf"ORDER\s*#?\s*{ORDER_ID_PATTERN.pattern}", re.IGNORECASE
)
_POPOVER_ORDER_ID = re.compile(r"orderId['\":\s]+([0-9A-Za-z-]+)")
_ORDER_ID_PARAM = re.compile(r"orderI[Dd]=([^&\"']+)")
_ORDER_PLACED = re.compile(
    r"(?:Order placed|Bestellung aufgegeben|Commande effectuée|Pedido realizado"
    r"|Ordine effettuato)[:\s]*\n?\s*([^\n]+)",
    re.IGNORECASE,
)
_TOTAL = re.compile(
    rf"\b(?:Total|Summe|Totale)[:\s]*\n?\s*({MONEY_PATTERN.pattern})", re.IGNORECASE
)
_SHIP_TO = re.compile(
    r"(?:Ship to|Dispatch to|Deliver to|Lieferung an|Livraison à)[:\s]*\n?\s*([^\n]+)",
    re.IGNORECASE,
)
_LIST_ITEM = re.compile(r"<li[^>]*>(.*?)</li>", re.IGNORECASE | re.DOTALL)

_SHIPPED_WORDS = (
    "arriving", "out for delivery", "shipped", "dispatched", "on the way", "in transit",
)

ITEM_COUNT_SELECTORS = (
    '[data-component="purchasedItems"]',
    '[data-component="itemTitle"]',
    ".yohtmlc-item, .a-fixed-left-grid-inner",
    ".shipment-item",
    'img[src*="images-amazon"], img[src*="media-amazon"]',
)


def status_from_primary_text(text: str) -> OrderStatus:
    """Map the delivery box headline (``Arriving Friday``, ``Delivered 3 May``)."""
    lowered = text.lower()
    if any(word in lowered for word in _SHIPPED_WORDS):
        return OrderStatus.SHIPPED
    if "delivered" in lowered:
        return OrderStatus.DELIVERED
    if "cancel" in lowered:
        return OrderStatus.CANCELLED
    if "refund" in lowered or "returned" in lowered:
        return OrderStatus.REFUNDED
    return OrderStatus.PROCESSING


def status_from_card_text(text: str) -> OrderStatus:
    """Infer a status from a whole order card; orders default to delivered."""
    lowered = text.lower()
    if "cancelled" in lowered or "canceled" in lowered:
        return OrderStatus.CANCELLED
    if "refund" in lowered or "returned" in lowered:
        return OrderStatus.REFUNDED
    if "delivered" in lowered:
        return OrderStatus.DELIVERED
    if "shipped" in lowered or "dispatched" in lowered:
        return OrderStatus.SHIPPED
    if "preparing" in lowered or "not yet shipped" in lowered:
        return OrderStatus.PROCESSING
    if "pending" in lowered:
        return OrderStatus.PENDING
    return OrderStatus.DELIVERED


def _template_address_lines(markup: str | None) -> list[str]:
    if not markup:
        return []
    items = _LIST_ITEM.findall(markup)
    if items:
        return split_address_lines("<br>".join(items))
    return split_address_lines(markup)


class OrderListExtractor:
    """Reads order headers from the order history page currently loaded."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._logger = logger or AmazonExtractionLogger()

    async def extract(self, region: str) -> list[OrderHeader]:
        """Headers of every order card on the page, first card per id kept."""
        cards = await self._find_cards()
        headers: list[OrderHeader] = []
        for index, card in enumerate(cards):
            try:
                header = await self.parse_card(card, region)
            except RecordRejected as e:
                self._logger.record_rejected("order", index, str(e))
                continue
            except (AuthenticationRequired, BatchAbort):
                raise
            except Exception as e:
                self._logger.record_failed("order", index, e)
                continue
            self._logger.header_extracted(header)
            headers.append(header)
        return RecordAccumulator(header_key, headers).records

    async def _find_cards(self) -> list[NodeHandle]:
        query = self._document.query
        outcome = await self._runner.run(
            [
                Strategy(selector, lambda selector=selector: query(selector))
                for selector in CARD_SELECTORS
            ],
            [],
            label="order_cards",
        )
        if outcome.strategy is None:
            self._logger.no_cards_found(self._document.current_url())
        else:
            self._logger.cards_found(outcome.strategy, len(outcome.value))
        return outcome.value

    async def parse_card(self, card: NodeHandle, region: str) -> OrderHeader:
        """Build a header from one order card.

        Raises:
            RecordRejected: If the card shows no order id
        """
        document = self._document
        text = await document.read_text(card)
        order_id = await self._order_id(card, text)
        if not order_id:
            msg = "order card has no order id"
            raise RecordRejected(msg)

        currency = currency_for_region(region)
        status_text = await first_text(document, STATUS_SELECTORS, card)
        if status_text:
            status = status_from_primary_text(status_text)
        else:
            status = status_from_card_text(text)

        template_address = self._template_address
        component_address = self._component_address
        count = self._count

        async def card_text_payment() -> PaymentMethod | None:
            return parse_masked_card(text)

        fields = await self._runner.merge_fields(
            {
                "address": [
                    Strategy("address_template", lambda: template_address(card)),
                    Strategy("address_component", lambda: component_address(card)),
                    Strategy(
                        "address_list",
                        lambda: all_texts(document, "li span.a-list-item", card),
                    ),
                ],
                "payment_method": [
                    Strategy("payment_widget", lambda: self._widget_payment(card)),
                    Strategy("payment_text", card_text_payment),
                ],
                "item_count": [
                    Strategy(selector, lambda selector=selector: count(selector, card))
                    for selector in ITEM_COUNT_SELECTORS
                ],
                "charges": [
                    Strategy(
                        "charge_summary",
                        lambda: read_charge_summary(document, currency, within=card),
                    )
                ],
            },
            defaults={"address": [], "charges": {}},
            label=f"order_card.{order_id}",
        )

        address: list[str] = fields["address"]
        ship_to = _SHIP_TO.search(text)
        recipient = address[0] if address else None
        if recipient is None and ship_to:
            recipient = ship_to.group(1).strip()
        charges: dict[str, Money] = fields["charges"]

        header = OrderHeader(
            id=order_id,
            date=self._order_date(text),
            total=self._total(text, currency),
            status=status,
            status_label=status_text,
            detail_url=order_detail_url(region, order_id),
            region=region,
            recipient=recipient,
            shipping_address=address,
            payment_method=fields["payment_method"],
            item_count=fields["item_count"],
            subscribe_and_save=extract_subscription_frequency(text),
        )
        tax = charges.get("tax") or charges.get("vat")
        if tax is not None:
            charges = {**charges, "tax": tax}
        header.fill_missing(**charges)
        return header

    async def _order_id(self, card: NodeHandle, text: str) -> str | None:
        document = self._document

        async def popover() -> str | None:
            value = await first_attribute(
                document, "[data-a-popover]", "data-a-popover", card
            )
            match = _POPOVER_ORDER_ID.search(value or "")
            return match.group(1) if match else None

        async def id_span() -> str | None:
            span = await first_text(document, ORDER_ID_SELECTORS, card)
            match = ORDER_ID_PATTERN.search(span) or HEX_ORDER_ID_PATTERN.search(span)
            return match.group(1) if match else None

        async def labelled() -> str | None:
            match = _LABELLED_ORDER_ID.search(text)
            return match.group(1) if match else None

        async def hex_id() -> str | None:
            match = HEX_ORDER_ID_PATTERN.search(text)
            return match.group(1) if match else None

        async def detail_link() -> str | None:
            href = await first_attribute(document, 'a[href*="orderID="]', "href", card)
            match = _ORDER_ID_PARAM.search(href or "")
            return match.group(1) if match else None

        return await self._runner.first(
            [
                Strategy("popover", popover),
                Strategy("order_id_span", id_span),
                Strategy("labelled_text", labelled),
                Strategy("hex_id", hex_id),
                Strategy("detail_link", detail_link),
            ],
            None,
            label="order_id",
        )

    @staticmethod
    def _order_date(text: str) -> dt.date | None:
        match = _ORDER_PLACED.search(text)
        if match:
            placed = find_date(match.group(1))
            if placed:
                return placed
        return find_date(text)

    @staticmethod
    def _total(text: str, currency: str) -> Money:
        match = _TOTAL.search(text)
        if match:
            return parse_money(match.group(1), currency)
        return find_money(text, currency) or Money.zero(currency)

    async def _template_address(self, card: NodeHandle) -> list[str]:
        script = await first_node(self._document, ADDRESS_TEMPLATE, card)
        if script is None:
            return []
        return _template_address_lines(
            await self._document.read_attribute(script, INNER_HTML)
        )

    async def _component_address(self, card: NodeHandle) -> list[str]:
        node = await first_node(self._document, SHIPPING_ADDRESS, card)
        if node is None:
            return []
        markup = await self._document.read_attribute(node, INNER_HTML)
        return split_address_lines(markup)

    async def _widget_payment(self, card: NodeHandle) -> PaymentMethod | None:
        widget = await first_node(self._document, PAYMENT_WIDGET, card)
        if widget is None:
            return None
        name = await first_text(self._document, METHOD_NAME, widget)
        if not name:
            return None
        digits = await first_text(
            self._document, METHOD_NUMBER, widget
        )
        return PaymentMethod(type=name, last_four=_last_four(digits))

    async def _count(self, selector: str, card: NodeHandle) -> int | None:
        return len(await self._document.query(selector, card)) or None


def _last_four(text: str | None) -> str | None:
    match = re.search(r"\d{4}", text or "")
    return match.group() if match else None


async def extract_order_headers(
    document: DocumentAccessor,
    region: str,
    runner: StrategyRunner,
    logger: AmazonExtractionLogger | None = None,
) -> list[OrderHeader]:
    """Functional form of ``OrderListExtractor.extract``."""
    return await OrderListExtractor(document, runner, logger).extract(region)


async def expected_order_count(document: DocumentAccessor) -> int | None:
    """Order count the page claims for the current filter (``12 orders``)."""
    return first_int(await first_text(document, ORDER_COUNT_SELECTOR))


async def has_next_page(document: DocumentAccessor) -> bool:
    return bool(await document.query(NEXT_PAGE_SELECTOR))


async def go_to_next_page(document: DocumentAccessor, region: str) -> bool:
    """Follow the pager's "Next" link.

    Returns:
        False when the page has no usable next link.
    """
    href = await first_attribute(document, f"{NEXT_PAGE_SELECTOR} a", "href")
    if not href:
        return False
    await document.navigate(absolute_url(region, href), wait_for=ANY_CARD)
    return True


class OrderListPages:
    """Order history as a pagination source for the crawl controller."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        region: str,
        *,
        year: int | None = None,
        months: int | None = None,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._region = region
        self._year = year
        self._months = months
        self._extractor = OrderListExtractor(document, runner, logger)
        self._page = 0
        self.expected_count: int | None = None

    @property
    def page(self) -> int:
        return self._page

    async def open(self) -> None:
        url = order_list_url(self._region, year=self._year, months=self._months)
        await self._document.navigate(url, wait_for=ANY_CARD)
        self._page = 0
        self.expected_count = await expected_order_count(self._document)

    async def extract(self) -> list[OrderHeader]:
        return await self._extractor.extract(self._region)

    async def has_next(self) -> bool:
        return await has_next_page(self._document)

    async def go_next(self) -> None:
        self._page += 1
        if await go_to_next_page(self._document, self._region):
            return
        url = order_list_url(
            self._region,
            year=self._year,
            months=self._months,
            start_index=self._page * ORDERS_PER_PAGE,
        )
        await self._document.navigate(url, wait_for=ANY_CARD)
