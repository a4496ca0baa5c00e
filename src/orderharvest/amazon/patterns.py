"""Text patterns shared by the Amazon extractors.

Labels are matched in several storefront languages; every helper returns
None (or an empty list) rather than raising when nothing matches.
"""

from __future__ import annotations

import re

from orderharvest.core.records import PaymentMethod

ORDER_ID_PATTERN = re.compile(r"\b([A-Z0-9]{3}-\d{7}-\d{7})\b", re.IGNORECASE)
HEX_ORDER_ID_PATTERN = re.compile(
    r"\b([a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12})\b",
    re.IGNORECASE,
)
ASIN_PATTERNS = (
    re.compile(r"/dp/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/gp/product/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/gp/aw/d/([A-Z0-9]{10})", re.IGNORECASE),
)

_SELLER_PATTERNS = (
    re.compile(
        r"Sold by:?\s*([^|•\n]+?)(?:\s*\||$|\n|Supplied|Fulfilled|\band\b|Dispatched)",
        re.IGNORECASE | re.MULTILINE,
    ),
    re.compile(r"Vendu par:?\s*([^|•\n]+?)(?:\s*\||$|\n|Expédié)", re.I | re.M),
    re.compile(r"Verkauf durch:?\s*([^|•\n]+?)(?:\s*\||$|\n|Versand)", re.I | re.M),
    re.compile(r"Vendido por:?\s*([^|•\n]+?)(?:\s*\||$|\n|Enviado)", re.I | re.M),
    re.compile(r"Venduto da:?\s*([^|•\n]+?)(?:\s*\||$|\n|Spedito)", re.I | re.M),
)

_SUPPLIER_LABELS = (
    "Supplied by",
    "Fulfilled by",
    "Dispatched from",
    "Expédié par",
    "Versand durch",
    "Enviado por",
    "Spedito da",
)
_SUPPLIER_PATTERNS = tuple(
    re.compile(rf"{label}:?\s*([^|•\n]+?)(?:\s*\||$|\n)", re.I | re.M)
    for label in _SUPPLIER_LABELS
)

_CONDITION_PATTERN = re.compile(
    r"Condition:?\s*([^|•\n$£€]+?)(?:\s*\||$|\n|\$|£|€)", re.I | re.M
)
_KNOWN_CONDITIONS = re.compile(
    r"\b(Used\s*-\s*(?:Like New|Very Good|Good|Acceptable)"
    r"|Collectible\s*-\s*(?:Like New|Very Good|Good|Acceptable)"
    r"|Refurbished|Renewed|New)\b",
    re.IGNORECASE,
)

_FREQUENCY_PATTERN = re.compile(r"Auto-delivered:\s*([^\n]+)", re.IGNORECASE)
_QUANTITY_PATTERN = re.compile(
    r"(?:Qty|Quantity|Menge|Quantité|Cantidad|Quantità):?\s*(\d+)", re.IGNORECASE
)
_MASKED_CARD_PATTERN = re.compile(r"([A-Za-z][A-Za-z\s]*?)\s*[•*]{2,}\s*(\d{4})")
_INTEGER = re.compile(r"\d+")

# Charge summary labels; checked in order, the first matching rule wins.
_CHARGE_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("grand_total", ("grand total", "total for this order", "order total"), ()),
    ("subtotal", ("subtotal", "zwischensumme", "sous-total"), ("before",)),
    ("shipping_refund", ("free shipping", "free delivery"), ()),
    ("shipping", ("postage", "shipping", "packing", "delivery", "livraison"), ()),
    ("vat", ("vat", "tva", "iva", "mwst"), ("before", "esclusa")),
    ("gst", ("gst", "hst"), ("before",)),
    ("pst", ("pst", "qst", "rst"), ("before",)),
    ("tax", ("tax",), ("before",)),
    ("promotion", ("promotion", "discount", "subscribe & save", "coupon"), ()),
    ("gift", ("gift card", "gift certificate"), ("wrap",)),
    ("refund", ("refund", "rimborso"), ()),
)


def find_order_ids(text: str | None) -> list[str]:
    """Every distinct order id in ``text``, in order of appearance."""
    if not text:
        return []
    found: list[str] = []
    for pattern in (ORDER_ID_PATTERN, HEX_ORDER_ID_PATTERN):
        for match in pattern.finditer(text):
            order_id = match.group(1)
            if order_id not in found:
                found.append(order_id)
    return found


def find_order_id(text: str | None) -> str | None:
    order_ids = find_order_ids(text)
    return order_ids[0] if order_ids else None


def extract_asin(url: str | None) -> str | None:
    """ASIN from a product URL (``/dp/``, ``/gp/product/``, ``/gp/aw/d/``)."""
    if not url:
        return None
    for pattern in ASIN_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1).upper()
    return None


def first_int(text: str | None) -> int | None:
    if not text:
        return None
    match = _INTEGER.search(text)
    return int(match.group()) if match else None


def extract_quantity(text: str | None) -> int | None:
    """Quantity from a labelled ``Qty: N`` fragment."""
    if not text:
        return None
    match = _QUANTITY_PATTERN.search(text)
    return int(match.group(1)) if match else None


def _first_group(patterns: tuple[re.Pattern[str], ...], text: str | None) -> str | None:
    if not text:
        return None
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            value = " ".join(match.group(1).split()).strip(" ,.")
            if value:
                return value
    return None


def extract_seller(text: str | None) -> str | None:
    return _first_group(_SELLER_PATTERNS, text)


def extract_supplier(text: str | None) -> str | None:
    return _first_group(_SUPPLIER_PATTERNS, text)


def extract_condition(text: str | None) -> str | None:
    """Item condition from a ``Condition:`` label, else a known phrase."""
    labelled = _first_group((_CONDITION_PATTERN,), text)
    if labelled:
        return labelled
    if not text:
        return None
    match = _KNOWN_CONDITIONS.search(text)
    return " ".join(match.group(1).split()) if match else None


def extract_subscription_frequency(text: str | None) -> str | None:
    return _first_group((_FREQUENCY_PATTERN,), text)


def parse_masked_card(text: str | None) -> PaymentMethod | None:
    """Card name and last four digits from text like ``Visa ••••1234``."""
    if not text:
        return None
    match = _MASKED_CARD_PATTERN.search(text)
    if not match:
        return None
    name = " ".join(match.group(1).split())
    if "card" not in name.lower():
        name = f"{name} Card"
    return PaymentMethod(type=name, last_four=match.group(2))


def classify_charge_label(label: str) -> str | None:
    """Map a charge summary label to an ``OrderHeader`` amount field."""
    lowered = " ".join(label.lower().split())
    for field_name, keywords, exclusions in _CHARGE_RULES:
        if any(word in lowered for word in exclusions):
            continue
        if any(word in lowered for word in keywords):
            return field_name
    return None
