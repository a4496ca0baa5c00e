"""Money value type and multi-locale price parsing."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import re

from pydantic import BaseModel, ConfigDict

_CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "GBP": "£",
    "EUR": "€",
    "JPY": "¥",
    "INR": "₹",
    "AED": "AED ",
    "SAR": "SAR ",
    "CAD": "CAD $",
    "AUD": "AUD $",
    "MXN": "MXN $",
}

# Checked in order, so longer prefixes come before the bare "$".
_LEADING_CURRENCY: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"^CDN\s*\$"), "CAD"),
    (re.compile(r"^CAD\s*\$?"), "CAD"),
    (re.compile(r"^AUD\s*\$?"), "AUD"),
    (re.compile(r"^MXN\s*\$?"), "MXN"),
    (re.compile(r"^USD\s*\$?"), "USD"),
    (re.compile(r"^AED\s*"), "AED"),
    (re.compile(r"^SAR\s*"), "SAR"),
    (re.compile(r"^GBP\s*"), "GBP"),
    (re.compile(r"^EUR\s*"), "EUR"),
    (re.compile(r"^JPY\s*"), "JPY"),
    (re.compile(r"^INR\s*"), "INR"),
    (re.compile(r"^\$"), "USD"),
    (re.compile(r"^£"), "GBP"),
    (re.compile(r"^€"), "EUR"),
    (re.compile(r"^[¥￥]"), "JPY"),
    (re.compile(r"^₹"), "INR"),
)

_TRAILING_CURRENCY: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\s*€$"), "EUR"),
    (re.compile(r"\s*£$"), "GBP"),
    (re.compile(r"\s*[¥￥円]$"), "JPY"),
    (re.compile(r"\s*(EUR|GBP|USD|JPY|INR|AED|SAR|CAD|AUD|MXN)$"), ""),
)

_NON_NUMERIC = re.compile(r"[^\d.,]")

# Loose money pattern used to find a price inside running text.
MONEY_PATTERN = re.compile(
    r"(?:CDN\s*\$|CAD\s*\$?|AUD\s*\$?|MXN\s*\$?|AED\s*|SAR\s*|[$£€¥￥₹])\s*-?\d(?:[\d.,]*\d)?"
    r"|-?\d(?:[\d.,]*\d)?\s*(?:€|EUR)"
)


class Money(BaseModel):
    """A signed amount in a single currency.

    Debits are negative and credits positive. ``original_text`` keeps the
    page text the amount was parsed from, if any.
    """

    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str
    currency_symbol: str = ""
    original_text: str = ""

    @classmethod
    def zero(cls, currency: str = "USD") -> Money:
        return money_from_amount(Decimal("0"), currency)

    @property
    def formatted(self) -> str:
        return format_money(self.amount, self.currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    def times(self, quantity: int) -> Money:
        """Return this amount multiplied by a quantity, same currency."""
        return money_from_amount(self.amount * quantity, self.currency)


def currency_symbol(currency: str) -> str:
    """Return the display symbol for an ISO currency code."""
    return _CURRENCY_SYMBOLS.get(currency, f"{currency} ")


def format_money(amount: Decimal, currency: str) -> str:
    """Render an amount with its currency symbol and two decimals."""
    rounded = amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if rounded < 0 else ""
    return f"{sign}{currency_symbol(currency)}{abs(rounded)}"


def money_from_amount(amount: Decimal | int | str, currency: str) -> Money:
    value = Decimal(str(amount))
    return Money(
        amount=value,
        currency=currency,
        currency_symbol=currency_symbol(currency).strip(),
        original_text=format_money(value, currency),
    )


def _detect_currency(text: str) -> tuple[str | None, str]:
    for pattern, code in _LEADING_CURRENCY:
        match = pattern.search(text)
        if match:
            return code, text[match.end() :]
    for pattern, code in _TRAILING_CURRENCY:
        match = pattern.search(text)
        if match:
            return code or match.group(1), text[: match.start()]
    return None, text


def _normalize_separators(number: str) -> str:
    if "," in number and "." in number:
        if number.rfind(",") > number.rfind("."):
            return number.replace(".", "").replace(",", ".")
        return number.replace(",", "")
    if "," in number:
        parts = number.split(",")
        if len(parts) == 2 and len(parts[1]) == 2:
            return number.replace(",", ".")
        return number.replace(",", "")
    return number


def parse_money(text: str | None, default_currency: str = "USD") -> Money:
    """Parse price text such as ``"$12.34"``, ``"€1.234,56"`` or ``"(£3.00)"``.

    The currency is taken from a leading or trailing symbol or ISO code.
    A ``-`` anywhere or surrounding parentheses make the amount negative.
    When both ``.`` and ``,`` appear the rightmost one is the decimal
    separator; a lone ``,`` followed by exactly two digits is a decimal
    separator, otherwise a thousands separator.

    Never raises: text without a number yields zero in ``default_currency``.

    Args:
        text: Raw text from the page
        default_currency: Currency used when the text names none

    Returns:
        Parsed Money
    """
    cleaned = (text or "").strip()
    negative = "-" in cleaned or "−" in cleaned or cleaned.startswith("(")
    unsigned = cleaned.strip("()").replace("-", "").replace("−", "").strip()

    detected, remainder = _detect_currency(unsigned)
    currency = detected or default_currency

    number = _normalize_separators(_NON_NUMERIC.sub("", remainder).strip(".,"))
    try:
        amount = Decimal(number) if number else Decimal("0")
    except InvalidOperation:
        amount = Decimal("0")
    if not amount.is_finite():
        amount = Decimal("0")
    if negative and amount:
        amount = -amount

    return Money(
        amount=amount,
        currency=currency,
        currency_symbol=currency_symbol(currency).strip(),
        original_text=cleaned,
    )


def find_money(text: str | None, default_currency: str = "USD") -> Money | None:
    """Return the first price found inside running text, if any."""
    match = MONEY_PATTERN.search(text or "")
    if match is None:
        return None
    return parse_money(match.group(0), default_currency)
