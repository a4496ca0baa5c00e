"""Tests for order detail page extraction."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal
from typing import Any

from orderharvest.adapters.documents.html import HtmlDocument
from orderharvest.amazon.order_details import (
    apply_region_taxes,
    charges_from_text,
    extract_order_details,
    extract_order_header,
)
from orderharvest.core.money import Money, parse_money
from orderharvest.core.records import OrderHeader
from orderharvest.core.strategy import StrategyRunner
from tests.amazon.fixtures import DETAIL_URL, ORDER_ID, detail_page


def _run_async(coro: Any) -> Any:
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _header() -> OrderHeader:
    return OrderHeader(
        id=ORDER_ID,
        total=Money.zero("GBP"),
        detail_url=DETAIL_URL,
        region="uk",
    )


class TestExtractOrderDetails:
    """Tests for extract_order_details."""

    def test_reads_detail_page(self) -> None:
        # input
        document = HtmlDocument.from_html(detail_page(), DETAIL_URL)

        # act
        runner = StrategyRunner()
        details = _run_async(extract_order_details(document, _header(), runner))

        # assert
        assert details.subtotal is not None
        assert details.subtotal.amount == Decimal("30.00")
        assert details.grand_total is not None
        assert details.grand_total.amount == Decimal("30.00")
        assert details.vat is not None
        assert details.tax == details.vat
        assert details.shipping is not None and details.shipping.is_zero
        assert details.recipient == "Jane Doe"
        assert details.shipping_address == [
            "Jane Doe",
            "12 High Street",
            "LONDON",
            "SW1A 1AA",
        ]
        assert details.payment_method is not None
        assert details.payment_method.type == "Visa"
        assert details.payment_method.last_four == "1234"
        assert details.invoice_url == (
            f"https://www.amazon.co.uk/your-orders/invoice/popover?orderId={ORDER_ID}"
        )

    def test_header_fields_fill_header(self) -> None:
        # input
        document = HtmlDocument.from_html(detail_page(), DETAIL_URL)
        header = _header()
        header.recipient = "Already Set"

        # act
        details = _run_async(extract_order_details(document, header, StrategyRunner()))
        filled = header.fill_missing(**details.header_fields())

        # assert
        assert "recipient" not in filled
        assert "subtotal" in filled
        assert header.recipient == "Already Set"
        assert header.payment_method is not None


class TestExtractOrderHeader:
    """Tests for extract_order_header."""

    def test_builds_header_from_page(self) -> None:
        # input
        document = HtmlDocument.from_html(detail_page(), DETAIL_URL)

        # act
        header = _run_async(extract_order_header(document, "uk", StrategyRunner()))

        # assert
        assert header is not None
        assert header.id == ORDER_ID
        assert header.date == date(2024, 11, 14)
        assert header.total.amount == Decimal("30.00")
        assert header.detail_url == DETAIL_URL
        assert header.recipient == "Jane Doe"

    def test_expected_id_preferred_over_first_id_on_page(self) -> None:
        # input
        related = "999-7654321-7654321"
        elsewhere = "111-0000000-0000000"
        page = detail_page().replace(
            f'<div data-component="orderId"><span>Order # {ORDER_ID}</span></div>',
            f"<p>Bought together with order {related}</p><p>Order # {ORDER_ID}</p>",
        )
        document = HtmlDocument.from_html(page, DETAIL_URL)
        runner = StrategyRunner()

        # act
        guided = _run_async(
            extract_order_header(document, "uk", runner, expected_id=ORDER_ID)
        )
        unguided = _run_async(extract_order_header(document, "uk", runner))
        absent = _run_async(
            extract_order_header(document, "uk", runner, expected_id=elsewhere)
        )

        # assert
        assert guided is not None
        assert guided.id == ORDER_ID
        assert unguided is not None
        assert unguided.id == related
        assert absent is not None
        assert absent.id == related

    def test_page_without_order_id(self) -> None:
        # input
        document = HtmlDocument.from_html("<html><body>Hi</body></html>", DETAIL_URL)

        # act
        header = _run_async(extract_order_header(document, "uk", StrategyRunner()))

        # assert
        assert header is None


class TestChargeHelpers:
    """Tests for charge parsing helpers."""

    def test_charges_from_text(self) -> None:
        # input
        text = (
            "Item(s) Subtotal: $40.00\n"
            "Shipping & Handling: $5.99\n"
            "Estimated tax to be collected: $3.20\n"
            "Grand Total: $49.19"
        )

        # act
        charges = charges_from_text(text, "USD")

        # assert
        assert charges["subtotal"].amount == Decimal("40.00")
        assert charges["shipping"].amount == Decimal("5.99")
        assert charges["tax"].amount == Decimal("3.20")
        assert charges["grand_total"].amount == Decimal("49.19")

    def test_region_tax_fallback(self) -> None:
        # input
        charges = {"gst": parse_money("CDN$ 2.00"), "pst": parse_money("CDN$ 1.00")}

        # act
        result = apply_region_taxes(charges, "ca")

        # assert
        assert result["tax"] == charges["gst"]

    def test_existing_tax_kept(self) -> None:
        # input
        charges = {"tax": parse_money("$1.00"), "vat": parse_money("$2.00")}

        # act
        result = apply_region_taxes(charges, "uk")

        # assert
        assert result["tax"].amount == Decimal("1.00")
