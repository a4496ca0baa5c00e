"""Line item extraction from order detail pages.

Layouts are probed newest first: the 2024+ ``data-component`` markup, the
fixed-left grid, grocery orders, the 2016 layout, then the two digital
order layouts.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from decimal import Decimal
from typing import Any

from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.patterns import (
    extract_asin,
    extract_condition,
    extract_quantity,
    extract_seller,
    extract_subscription_frequency,
    extract_supplier,
    first_int,
)
from orderharvest.amazon.urls import absolute_url, product_url
from orderharvest.core.dedup import RecordAccumulator
from orderharvest.core.document import (
    DocumentAccessor,
    NodeHandle,
    first_attribute,
    first_text,
)
from orderharvest.core.errors import AuthenticationRequired, BatchAbort, RecordRejected
from orderharvest.core.money import Money, find_money, money_from_amount, parse_money
from orderharvest.core.records import LineItem, OrderHeader
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

PRODUCT_LINK = 'a[href*="/dp/"], a[href*="/gp/product/"]'
LAYOUT_TIMEOUT = 10.0

ITEM_TITLE = '[data-component="itemTitle"]'
ITEM_TITLE_LINK = f"{ITEM_TITLE} a"
MERCHANT = '[data-component="orderedMerchant"]'
CONDITION = '[data-component="itemCondition"]'
FREQUENCY = '[data-component="deliveryFrequency"]'
UNIT_PRICE = (
    '[data-component="unitPrice"] .a-offscreen',
    '[data-component="unitPrice"] span',
)
QUANTITY = (".od-item-view-qty span", '[data-component="quantity"]')
LEGACY_PRODUCT_LINK = 'a[href*="/product/"]'
GROCERY_TOTAL = '[id*="item-total-price"]'
_CENT = Decimal("0.01")

ParseItem = Callable[[NodeHandle], Awaitable[LineItem]]


def build_line_item(
    header: OrderHeader,
    *,
    name: str,
    unit_price: Money,
    quantity: int = 1,
    href: str | None = None,
    asin: str | None = None,
    source: str = "",
    **extra: Any,
) -> LineItem:
    """Create a line item, deriving id, URL and total from the basics.

    Raises:
        RecordRejected: If the item has no name
    """
    name = " ".join(name.split())
    if not name:
        msg = "item has no name"
        raise RecordRejected(msg)
    asin = asin or extract_asin(href)
    if href:
        url = absolute_url(header.region, href)
    elif asin:
        url = product_url(header.region, asin)
    else:
        url = ""
    quantity = max(quantity, 1)
    return LineItem(
        id=asin or name[:50],
        asin=asin,
        name=name,
        quantity=quantity,
        unit_price=unit_price,
        total_price=unit_price.times(quantity),
        url=url,
        order_header=header,
        source=source,
        **extra,
    )


class ItemExtractor:
    """Reads the line items of the order detail page currently loaded."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._logger = logger or AmazonExtractionLogger()

    async def extract(self, header: OrderHeader) -> list[LineItem]:
        """Items of ``header``'s order; empty when no layout matches."""
        layouts = {
            "data_component": self._data_component,
            "fixed_left_grid": self._fixed_left_grid,
            "grocery": self._grocery,
            "legacy_2016": self._legacy,
            "digital_summary": self._digital_summary,
            "digital_ordered": self._digital_ordered,
        }
        outcome = await self._runner.run(
            [
                Strategy(name, lambda layout=layout: layout(header), LAYOUT_TIMEOUT)
                for name, layout in layouts.items()
            ],
            [],
            label=f"items.{header.id}",
        )
        self._logger.items_extracted(header.id, len(outcome.value), outcome.strategy)
        return outcome.value

    async def _parse_each(
        self, containers: list[NodeHandle], parse: ParseItem, *, unique: bool = False
    ) -> list[LineItem]:
        items: list[LineItem] = []
        for index, container in enumerate(containers):
            try:
                items.append(await parse(container))
            except RecordRejected as e:
                self._logger.record_rejected("item", index, str(e))
            except (AuthenticationRequired, BatchAbort):
                raise
            except Exception as e:
                self._logger.record_failed("item", index, e)
        if unique:
            return RecordAccumulator(lambda item: item.id, items).records
        return items

    async def _text(self, node: NodeHandle) -> str:
        return await self._document.read_text(node)

    async def _data_component(self, header: OrderHeader) -> list[LineItem]:
        containers = await self._document.query('[data-component="purchasedItems"]')
        currency = currency_for_region(header.region)
        document = self._document

        async def parse(container: NodeHandle) -> LineItem:
            async def container_text() -> str:
                return await self._text(container)

            async def merchant_link() -> str:
                return await first_text(document, f"{MERCHANT} a", container)

            async def seller_label() -> str | None:
                span = await first_text(document, f"{MERCHANT} span", container)
                return extract_seller(span)

            async def seller_text() -> str | None:
                return extract_seller(await container_text())

            async def supplier_text() -> str | None:
                return extract_supplier(await container_text())

            async def condition_component() -> str | None:
                text = await first_text(document, CONDITION, container)
                return extract_condition(text)

            async def condition_text() -> str | None:
                return extract_condition(await container_text())

            async def frequency() -> str | None:
                text = await first_text(document, FREQUENCY, container)
                return extract_subscription_frequency(text)

            async def unit_price() -> str:
                return await first_text(document, UNIT_PRICE, container)

            async def quantity() -> int | None:
                return first_int(await first_text(document, QUANTITY, container))

            async def title_link() -> str:
                return await first_text(document, ITEM_TITLE_LINK, container)

            async def title() -> str:
                return await first_text(document, ITEM_TITLE, container)

            async def title_href() -> str | None:
                return await first_attribute(
                    document, ITEM_TITLE_LINK, "href", container
                )

            async def image() -> str | None:
                return await first_attribute(document, "img", "src", container)

            fields = await self._runner.merge_fields(
                {
                    "name": [
                        Strategy("title_link", title_link),
                        Strategy("title", title),
                    ],
                    "href": [Strategy("title_href", title_href)],
                    "price": [Strategy("unit_price", unit_price)],
                    "quantity": [Strategy("quantity", quantity)],
                    "condition": [
                        Strategy("condition_component", condition_component),
                        Strategy("condition_text", condition_text),
                    ],
                    "seller": [
                        Strategy("merchant_link", merchant_link),
                        Strategy("merchant_label", seller_label),
                        Strategy("seller_text", seller_text),
                    ],
                    "supplied_by": [Strategy("supplier_text", supplier_text)],
                    "frequency": [Strategy("delivery_frequency", frequency)],
                    "image": [Strategy("image", image)],
                },
                defaults={"name": "", "quantity": 1},
                label="item",
            )
            return build_line_item(
                header,
                name=fields["name"],
                unit_price=parse_money(fields["price"], currency),
                quantity=fields["quantity"],
                href=fields["href"],
                source="data_component",
                condition=fields["condition"],
                seller=fields["seller"],
                supplied_by=fields["supplied_by"],
                subscription_frequency=fields["frequency"],
                image_url=fields["image"],
            )

        return await self._parse_each(containers, parse)

    async def _first_product_link(
        self, container: NodeHandle
    ) -> tuple[str, str | None]:
        """Text and href of the first product link with visible text."""
        for link in await self._document.query(PRODUCT_LINK, container):
            name = " ".join((await self._text(link)).split())
            if name:
                return name, await self._document.read_attribute(link, "href")
        return "", None

    async def _fixed_left_grid(self, header: OrderHeader) -> list[LineItem]:
        currency = currency_for_region(header.region)
        candidates: list[NodeHandle] = []
        for grid in await self._document.query("div.a-fixed-left-grid-inner"):
            has_link = await self._document.query(PRODUCT_LINK, grid)
            has_price = await self._document.query('[class*="price"]', grid)
            if has_link and has_price:
                candidates.append(grid)

        async def parse(container: NodeHandle) -> LineItem:
            name, href = await self._first_product_link(container)
            price = await first_text(self._document, '[class*="price"]', container)
            quantity = await first_text(
                self._document, '.item-view-qty, [class*="quantity"]', container
            )
            text = await self._text(container)
            image = await first_attribute(self._document, "img", "src", container)
            return build_line_item(
                header,
                name=name,
                unit_price=parse_money(price, currency),
                quantity=first_int(quantity) or 1,
                href=href,
                source="fixed_left_grid",
                condition=extract_condition(text),
                seller=extract_seller(text),
                supplied_by=extract_supplier(text),
                image_url=image,
            )

        return await self._parse_each(candidates, parse)

    async def _grocery(self, header: OrderHeader) -> list[LineItem]:
        currency = currency_for_region(header.region)
        containers = await self._document.query(
            'div.a-fixed-left-grid:has([id*="item-total-price"])'
        )

        async def parse(container: NodeHandle) -> LineItem:
            link = 'a[href*="/product/"], a.a-link-normal[href*="/gp/"]'
            name = await first_text(self._document, link, container)
            href = await first_attribute(self._document, link, "href", container)
            total_text = await first_text(self._document, GROCERY_TOTAL, container)
            total = parse_money(total_text, currency)
            quantity = extract_quantity(await self._text(container)) or 1
            # The grocery layout shows the line total, not the unit price.
            unit = total
            if quantity > 1:
                unit = money_from_amount(
                    (total.amount / quantity).quantize(_CENT), total.currency
                )
            return build_line_item(
                header,
                name=name,
                unit_price=unit,
                quantity=quantity,
                href=href,
                source="grocery",
            )

        return await self._parse_each(containers, parse, unique=True)

    async def _legacy(self, header: OrderHeader) -> list[LineItem]:
        currency = currency_for_region(header.region)
        containers = await self._document.query(
            'div[id*="orderDetails"] div:has(> a[href*="/product/"]), '
            'div[id*="orderDetails"] div:has(> a[href*="/dp/"])'
        )

        async def parse(container: NodeHandle) -> LineItem:
            name, href = await self._first_product_link(container)
            if not name:
                link = LEGACY_PRODUCT_LINK
                name = await first_text(self._document, link, container)
                href = await first_attribute(self._document, link, "href", container)
            text = await self._text(container)
            return build_line_item(
                header,
                name=name,
                unit_price=find_money(text, currency) or Money.zero(currency),
                quantity=extract_quantity(text) or 1,
                href=href,
                source="legacy_2016",
                condition=extract_condition(text),
                seller=extract_seller(text),
            )

        return await self._parse_each(containers, parse, unique=True)

    async def _digital_summary(self, header: OrderHeader) -> list[LineItem]:
        currency = currency_for_region(header.region)
        links = await self._document.query(
            '#digitalOrderSummaryContainer a[href*="/dp/"]'
        )

        async def parse(link: NodeHandle) -> LineItem:
            return build_line_item(
                header,
                name=await self._text(link),
                unit_price=Money.zero(currency),
                href=await self._document.read_attribute(link, "href"),
                source="digital_subscription",
            )

        return await self._parse_each(links, parse, unique=True)

    async def _digital_ordered(self, header: OrderHeader) -> list[LineItem]:
        currency = currency_for_region(header.region)
        candidates: list[NodeHandle] = []
        for box in await self._document.query('div.a-box:has(a[href*="/dp/"])'):
            text = await self._text(box)
            if "Ordered" in text or "Commandé" in text:
                candidates.append(box)

        async def parse(box: NodeHandle) -> LineItem:
            name, href = await self._first_product_link(box)
            text = await self._text(box)
            return build_line_item(
                header,
                name=name,
                unit_price=find_money(text, currency) or Money.zero(currency),
                href=href,
                source="digital",
            )

        return await self._parse_each(candidates, parse, unique=True)


async def extract_items(
    document: DocumentAccessor,
    header: OrderHeader,
    runner: StrategyRunner,
    logger: AmazonExtractionLogger | None = None,
) -> list[LineItem]:
    """Functional form of ``ItemExtractor.extract``."""
    return await ItemExtractor(document, runner, logger).extract(header)
