"""Tests for the shared text patterns."""

from __future__ import annotations

from orderharvest.amazon.patterns import (
    classify_charge_label,
    extract_asin,
    extract_condition,
    extract_quantity,
    extract_seller,
    extract_subscription_frequency,
    extract_supplier,
    find_order_id,
    find_order_ids,
    first_int,
    parse_masked_card,
)


class TestOrderIds:
    """Tests for order id discovery."""

    def test_distinct_in_order(self) -> None:
        # input
        text = (
            "Order #203-1234567-1234567, digital D01-7654321-7654321 "
            "and again 203-1234567-1234567"
        )

        # act
        result = find_order_ids(text)

        # assert
        assert result == ["203-1234567-1234567", "D01-7654321-7654321"]

    def test_hex_order_id(self) -> None:
        # act
        result = find_order_id("Order 1a2b3c4d-1111-2222-3333-444455556666")

        # assert
        assert result == "1a2b3c4d-1111-2222-3333-444455556666"

    def test_nothing_found(self) -> None:
        # assert
        assert find_order_ids(None) == []
        assert find_order_id("no id here") is None


class TestProductFields:
    """Tests for item field helpers."""

    def test_extract_asin(self) -> None:
        # assert
        assert extract_asin("/dp/b0abcdefgh?ref=x") == "B0ABCDEFGH"
        assert extract_asin("/gp/product/B0GADGET01") == "B0GADGET01"
        assert extract_asin("/gp/aw/d/B0LAMP0001") == "B0LAMP0001"
        assert extract_asin("/s?k=widget") is None

    def test_seller_stops_at_and(self) -> None:
        # act
        result = extract_seller("Sold by: Acme Ltd and Fulfilled by Amazon")

        # assert
        assert result == "Acme Ltd"

    def test_seller_in_german(self) -> None:
        # assert
        assert extract_seller("Verkauf durch: Muster GmbH\nVersand") == "Muster GmbH"

    def test_supplier(self) -> None:
        # assert
        assert extract_supplier("Supplied by: Amazon EU | Qty 1") == "Amazon EU"

    def test_condition(self) -> None:
        # assert
        assert extract_condition("Condition: Used - Very Good | £5.00") == (
            "Used - Very Good"
        )
        assert extract_condition("A Renewed product") == "Renewed"
        assert extract_condition("Nothing to see") is None

    def test_quantity(self) -> None:
        # assert
        assert extract_quantity("Qty: 3") == 3
        assert extract_quantity("Menge: 2") == 2
        assert extract_quantity("three") is None
        assert first_int("x 12 y 4") == 12

    def test_subscription_frequency(self) -> None:
        # assert
        assert extract_subscription_frequency("Auto-delivered: Every 2 months") == (
            "Every 2 months"
        )


class TestPaymentAndCharges:
    """Tests for payment and charge label helpers."""

    def test_masked_card(self) -> None:
        # act
        card = parse_masked_card("Visa •••• 1234")

        # assert
        assert card is not None
        assert card.type == "Visa Card"
        assert card.last_four == "1234"
        assert parse_masked_card("Gift card balance") is None

    def test_charge_labels(self) -> None:
        # assert
        assert classify_charge_label("Item(s) Subtotal:") == "subtotal"
        assert classify_charge_label("Postage & Packing:") == "shipping"
        assert classify_charge_label("Free Delivery:") == "shipping_refund"
        assert classify_charge_label("Grand Total:") == "grand_total"
        assert classify_charge_label("Estimated GST/HST:") == "gst"
        assert classify_charge_label("Your Coupon Savings:") == "promotion"

    def test_before_tax_labels_ignored(self) -> None:
        # assert
        assert classify_charge_label("Total before VAT:") is None
        assert classify_charge_label("Gift Wrap:") is None
