"""Shipment extraction from order detail pages, plus ship-track pages."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
import re

from orderharvest.amazon.items import LAYOUT_TIMEOUT, ItemExtractor
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.urls import absolute_url
from orderharvest.core.document import (
    DocumentAccessor,
    NodeHandle,
    first_attribute,
    first_text,
    page_text,
)
from orderharvest.core.errors import NavigationFailure
from orderharvest.core.money import Money, find_money, money_from_amount
from orderharvest.core.records import DeliveryState, LineItem, OrderHeader, Shipment
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

_DELIVERED_WORDS = ("delivered", "entregado", "livré", "zugestellt", "consegnato")
_IN_TRANSIT_WORDS = (
    "shipping",
    "in transit",
    "out for delivery",
    "arriving",
    "expected",
    "on the way",
    "dispatched",
    "shipped",
)
_TRACKING_ID_PARAM = re.compile(r"tracking[_-]?id=([^&]+)", re.IGNORECASE)
_SHIPMENT_ID_PARAM = re.compile(r"shipmentId=([^&]+)")
_LONG_NUMBER = re.compile(r"\d{10,}")
_STATUS_LINE = re.compile(
    r"^.*\b(?:Delivered|Arriving|Shipped|Dispatched)\b.*$", re.M
)
_REFUND_LINE = re.compile(r"Refund for this return[^\n]*\n?[^\n]*")

_TRACKING_FORMATS = (
    re.compile(r"^AZ\d{9}[A-Z]{2}$"),
    re.compile(r"^TBA\d+$"),
    re.compile(r"^[A-Z]{2}\d{9}[A-Z]{2}$"),
    re.compile(r"^\d{14}$|^\d{16}$"),
    re.compile(r"^\d{10,}$"),
    re.compile(r"^[A-Z0-9]{10,20}$"),
)
_TRACKING_SELECTORS = (
    ".pt-delivery-card-trackingId",
    '[data-test-id="tracking-number"]',
    ".carrierRelatedInfo-trackingId-text",
    ".a-row.pt-carrier-tracking-id",
    ".ship-track-grid-content .a-text-bold",
    '[class*="tracking"] .a-text-bold',
    '[class*="tracking-id"]',
    '[class*="trackingId"]',
)
_TRACKING_ID_TEXT = re.compile(r"Tracking\s*ID:?\s*([A-Z0-9]{10,20})", re.IGNORECASE)
_CARRIER_CODE = re.compile(r"Delivery\s+By\s+([A-Z][A-Z0-9_]{2,30})\b")
_CARRIER_TITLE = re.compile(
    r"Delivery\s+By\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,2})\b"
)
_CARRIER_SHIPPED = re.compile(
    r"(?:Shipped\s+with|Carrier:?)\s+([A-Z][A-Za-z0-9_ ]{2,25}?)(?:\.|,|\n|$)",
    re.IGNORECASE | re.MULTILINE,
)

SHIPMENT_STATUS = '[data-component="shipmentStatus"]'
PURCHASED_ITEMS = '[data-component="purchasedItems"]'
TRACKING_PAGE_READY = '.carrierRelatedInfo, [class*="tracking"], .pt-delivery-card'
_BOX_STATUS = (".shipment-info-container .a-row > span", SHIPMENT_STATUS)
_BOX_TRACKING_LINKS = ('a[href*="/progress-tracker/"]', 'a[href*="/ship-track"]')
_EXPANDER_ROW = '[class*="expander"] .a-row'
_STATUS_TEXT = (".od-status-message", "h4", ".a-text-bold")
_COMPONENT_TRACKING_LINKS = (
    '[data-component="shipmentConnections"] a[href*="ship-track"]',
    'a[href*="ship-track"]',
    'a[href*="/progress-tracker/"]',
)
_DELIVERY_STATUS = '.a-color-success, .a-color-state, [class*="status"]'
_ANY_TRACK_LINK = ('a[href*="track"]',)


@dataclass(frozen=True, slots=True)
class TrackingInfo:
    tracking_id: str | None = None
    carrier: str | None = None


def parse_delivery_status(text: str | None) -> DeliveryState:
    lowered = (text or "").lower()
    if any(word in lowered for word in _DELIVERED_WORDS):
        return DeliveryState.DELIVERED
    if any(word in lowered for word in _IN_TRANSIT_WORDS):
        return DeliveryState.NOT_DELIVERED
    return DeliveryState.UNKNOWN


def validate_tracking_number(text: str | None) -> str | None:
    """Return the tracking number if it looks like a known carrier format."""
    cleaned = (text or "").strip().upper()
    for pattern in _TRACKING_FORMATS:
        if pattern.match(cleaned):
            return cleaned
    return None


def tracking_id_from_link(href: str | None) -> str | None:
    match = _TRACKING_ID_PARAM.search(href or "")
    return match.group(1) if match else None


def _shipment_id(header: OrderHeader, href: str | None, fallback: str) -> str:
    match = _SHIPMENT_ID_PARAM.search(href or "")
    return match.group(1) if match else f"{header.id}-{fallback}"


async def extract_tracking_info(document: DocumentAccessor) -> TrackingInfo:
    """Read tracking number and carrier from a loaded ship-track page."""
    tracking_id = None
    for selector in _TRACKING_SELECTORS:
        tracking_id = validate_tracking_number(await first_text(document, selector))
        if tracking_id:
            break

    text = await page_text(document)
    if tracking_id is None:
        match = _TRACKING_ID_TEXT.search(text)
        tracking_id = validate_tracking_number(match.group(1)) if match else None

    carrier = None
    match = _CARRIER_CODE.search(text)
    if match:
        carrier = match.group(1)
    if carrier is None:
        match = _CARRIER_TITLE.search(text)
        if match and len(match.group(1)) <= 30 and "Amazon" not in match.group(1):
            carrier = match.group(1)
    if carrier is None:
        match = _CARRIER_SHIPPED.search(text)
        if match:
            carrier = match.group(1).strip()

    return TrackingInfo(tracking_id=tracking_id, carrier=carrier)


class ShipmentExtractor:
    """Reads the shipments of the order detail page currently loaded."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._logger = logger or AmazonExtractionLogger()

    async def extract(
        self,
        header: OrderHeader,
        items: list[LineItem] | None = None,
        *,
        fetch_tracking_numbers: bool = False,
    ) -> list[Shipment]:
        """Shipments of ``header``'s order.

        Args:
            header: Order the detail page belongs to
            items: Line items already read from the page; read here if None
            fetch_tracking_numbers: Visit each ship-track page for the
                carrier's tracking number (one extra navigation per shipment)

        Returns:
            Shipments from the first layout that matches, else empty.
        """
        if items is None:
            extractor = ItemExtractor(self._document, self._runner, self._logger)
            items = await extractor.extract(header)
        order_items = items

        layouts = {
            "shipment_box": self._shipment_boxes,
            "data_component": self._data_component,
            "delivery_box": self._delivery_boxes,
            "tracking_section": self._tracking_sections,
            "single_shipment": self._single,
        }
        outcome = await self._runner.run(
            [
                Strategy(
                    name,
                    lambda layout=layout: layout(header, order_items),
                    LAYOUT_TIMEOUT,
                )
                for name, layout in layouts.items()
            ],
            [],
            label=f"shipments.{header.id}",
        )
        shipments: list[Shipment] = outcome.value
        self._logger.shipments_extracted(header.id, len(shipments), outcome.strategy)

        if fetch_tracking_numbers and shipments:
            await self._fetch_tracking_numbers(shipments)
        return shipments

    async def _tracking_link(
        self, selectors: tuple[str, ...], within: NodeHandle, region: str
    ) -> str | None:
        for selector in selectors:
            href = await first_attribute(self._document, selector, "href", within)
            if href:
                return absolute_url(region, href)
        return None

    async def _shipment_boxes(
        self, header: OrderHeader, items: list[LineItem]
    ) -> list[Shipment]:
        currency = currency_for_region(header.region)
        shipments: list[Shipment] = []
        for index, box in enumerate(await self._document.query("div.a-box.shipment")):
            classes = await self._document.read_attribute(box, "class") or ""
            text = await self._document.read_text(box)
            if "shipment-is-delivered" in classes.split():
                state = DeliveryState.DELIVERED
            else:
                state = parse_delivery_status(text)
            status = await first_text(self._document, _BOX_STATUS, box)
            link = await self._tracking_link(_BOX_TRACKING_LINKS, box, header.region)

            payment_amount = None
            if "Transactions" in text:
                expander = await first_text(self._document, _EXPANDER_ROW, box)
                payment_amount = find_money(expander, currency)

            refund = None
            refund_match = _REFUND_LINE.search(text)
            if refund_match:
                refund = find_money(refund_match.group(0), currency)
                if refund is not None and refund.is_zero:
                    refund = None

            shipments.append(
                Shipment(
                    shipment_id=_shipment_id(header, link, f"shipment-{index + 1}"),
                    order_header=header,
                    items=items if index == 0 else [],
                    delivery_state=state,
                    status=status or "Unknown",
                    tracking_link=link,
                    tracking_id=tracking_id_from_link(link),
                    payment_amount=payment_amount,
                    refund=refund,
                )
            )
        return shipments

    async def _component_status(self, box: NodeHandle) -> str:
        status_nodes = await self._document.query(SHIPMENT_STATUS, box)
        if not status_nodes:
            return ""
        status = await first_text(self._document, _STATUS_TEXT, status_nodes[0])
        if status:
            return status
        return " ".join((await self._document.read_text(status_nodes[0])).split())

    async def _data_component(
        self, header: OrderHeader, items: list[LineItem]
    ) -> list[Shipment]:
        containers = await self._document.query('[data-component="shipments"]')
        shipments: list[Shipment] = []
        offset = 0
        for index, box in enumerate(containers):
            status = await self._component_status(box)
            link = await self._tracking_link(
                _COMPONENT_TRACKING_LINKS, box, header.region
            )

            # Items are listed in shipment order; hand each box its share.
            count = len(await self._document.query(PURCHASED_ITEMS, box))
            if len(containers) == 1:
                shipment_items = items
            elif count:
                shipment_items = items[offset : offset + count]
                offset += count
            else:
                shipment_items = items[offset:] if index == 0 else []

            shipments.append(
                Shipment(
                    shipment_id=_shipment_id(header, link, f"shipment-{index + 1}"),
                    order_header=header,
                    items=shipment_items,
                    delivery_state=parse_delivery_status(status),
                    status=status or "Unknown",
                    tracking_link=link,
                    tracking_id=tracking_id_from_link(link),
                )
            )
        return shipments

    async def _delivery_boxes(
        self, header: OrderHeader, items: list[LineItem]
    ) -> list[Shipment]:
        shipments: list[Shipment] = []
        sections = await self._document.query(
            '[data-component="deliveryStatus"], .delivery-box'
        )
        for index, section in enumerate(sections):
            status = await first_text(self._document, _DELIVERY_STATUS, section)
            link = await self._tracking_link(_ANY_TRACK_LINK, section, header.region)
            number = _LONG_NUMBER.search(await self._document.read_text(section))
            tracking_id = tracking_id_from_link(link)
            if tracking_id is None and number:
                tracking_id = number.group()
            shipments.append(
                Shipment(
                    shipment_id=f"{header.id}-delivery-{index + 1}",
                    order_header=header,
                    items=items if index == 0 else [],
                    delivery_state=parse_delivery_status(status),
                    status=status or "Unknown",
                    tracking_link=link,
                    tracking_id=tracking_id,
                )
            )
        return shipments

    async def _tracking_sections(
        self, header: OrderHeader, items: list[LineItem]
    ) -> list[Shipment]:
        shipments: list[Shipment] = []
        sections = await self._document.query(
            '[id*="tracking"], [class*="tracking-package"]'
        )
        for index, section in enumerate(sections):
            text = " ".join((await self._document.read_text(section)).split())
            link = await self._tracking_link(_ANY_TRACK_LINK, section, header.region)
            shipments.append(
                Shipment(
                    shipment_id=f"{header.id}-tracking-{index + 1}",
                    order_header=header,
                    items=items if index == 0 else [],
                    delivery_state=parse_delivery_status(text),
                    status=text[:100] or "Unknown",
                    tracking_link=link,
                    tracking_id=tracking_id_from_link(link),
                )
            )
        return shipments

    async def _single(
        self, header: OrderHeader, items: list[LineItem]
    ) -> list[Shipment]:
        match = _STATUS_LINE.search(await page_text(self._document))
        status = match.group(0).strip()[:100] if match else ""
        if not status and not items:
            return []
        link = await first_attribute(self._document, 'a[href*="track"]', "href")
        link = absolute_url(header.region, link) if link else None
        return [
            Shipment(
                shipment_id=f"{header.id}-shipment-1",
                order_header=header,
                items=items,
                delivery_state=parse_delivery_status(status),
                status=status or "Unknown",
                tracking_link=link,
                tracking_id=tracking_id_from_link(link),
            )
        ]

    async def _fetch_tracking_numbers(self, shipments: list[Shipment]) -> None:
        detail_url = self._document.current_url()
        visited = False
        for shipment in shipments:
            if not shipment.tracking_link:
                continue
            if shipment.tracking_id and shipment.carrier:
                continue
            try:
                await self._document.navigate(
                    shipment.tracking_link, wait_for=TRACKING_PAGE_READY
                )
            except NavigationFailure as e:
                self._logger.tracking_page_failed(shipment.tracking_link, e)
                continue
            visited = True
            info = await extract_tracking_info(self._document)
            shipment.tracking_id = shipment.tracking_id or info.tracking_id
            shipment.carrier = shipment.carrier or info.carrier

        if visited:
            await self._document.navigate(detail_url)


async def extract_shipments(
    document: DocumentAccessor,
    header: OrderHeader,
    runner: StrategyRunner,
    items: list[LineItem] | None = None,
    *,
    fetch_tracking_numbers: bool = False,
    logger: AmazonExtractionLogger | None = None,
) -> list[Shipment]:
    """Functional form of ``ShipmentExtractor.extract``."""
    extractor = ShipmentExtractor(document, runner, logger)
    return await extractor.extract(
        header, items, fetch_tracking_numbers=fetch_tracking_numbers
    )


def shipment_refund_total(shipments: list[Shipment]) -> Money | None:
    """Sum of shipment refunds, or None when no shipment was refunded."""
    refunds = [s.refund for s in shipments if s.refund is not None]
    if not refunds:
        return None
    return money_from_amount(
        sum((refund.amount for refund in refunds), Decimal("0")), refunds[0].currency
    )
