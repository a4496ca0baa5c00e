"""Multi-locale date parsing for order, transaction and ledger dates."""

from __future__ import annotations

from datetime import date, datetime
import re

from dateutil import parser as dateutil_parser

_MONTHS_EN = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5,
    "june": 6, "july": 7, "august": 8, "september": 9, "october": 10,
    "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTHS_DE = {
    "januar": 1, "februar": 2, "märz": 3, "maerz": 3, "april": 4, "mai": 5,
    "juni": 6, "juli": 7, "august": 8, "september": 9, "oktober": 10,
    "november": 11, "dezember": 12,
    "mär": 3, "okt": 10, "dez": 12,
}
_MONTHS_FR = {
    "janvier": 1, "février": 2, "fevrier": 2, "mars": 3, "avril": 4,
    "mai": 5, "juin": 6, "juillet": 7, "août": 8, "aout": 8,
    "septembre": 9, "octobre": 10, "novembre": 11, "décembre": 12,
    "decembre": 12,
    "janv": 1, "fév": 2, "fev": 2, "févr": 2, "avr": 4, "juil": 7,
    "aoû": 8, "aou": 8, "déc": 12,
}
_MONTHS_ES = {
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4, "mayo": 5,
    "junio": 6, "julio": 7, "agosto": 8, "septiembre": 9, "setiembre": 9,
    "octubre": 10, "noviembre": 11, "diciembre": 12,
    "ene": 1, "abr": 4, "ago": 8, "dic": 12,
}
_MONTHS_IT = {
    "gennaio": 1, "febbraio": 2, "marzo": 3, "aprile": 4, "maggio": 5,
    "giugno": 6, "luglio": 7, "agosto": 8, "settembre": 9, "ottobre": 10,
    "novembre": 11, "dicembre": 12,
    "gen": 1, "mag": 5, "giu": 6, "lug": 7, "set": 9, "ott": 10,
}
_MONTHS_NL = {
    "januari": 1, "februari": 2, "maart": 3, "april": 4, "mei": 5,
    "juni": 6, "juli": 7, "augustus": 8, "september": 9, "oktober": 10,
    "november": 11, "december": 12,
    "mrt": 3,
}

# Later tables never override earlier ones; shared abbreviations agree.
MONTH_NAMES: dict[str, int] = {}
for _table in (_MONTHS_EN, _MONTHS_DE, _MONTHS_FR, _MONTHS_ES, _MONTHS_IT, _MONTHS_NL):
    for _name, _number in _table.items():
        MONTH_NAMES.setdefault(_name, _number)
for _number in range(1, 13):
    MONTH_NAMES[f"{_number}月"] = _number

_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
_MONTH_DAY_YEAR = re.compile(r"^(\w+)\.?\s+(\d{1,2}),?\s+(\d{4})$")
_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})\.?\s+(\w+)\.?\s+(\d{4})$")
_SPANISH = re.compile(r"^(\d{1,2})\s+de\s+(\w+)\.?\s+de\s+(\d{4})$", re.IGNORECASE)
_JAPANESE = re.compile(r"^(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日$")
_NUMERIC = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2}|\d{4})$")

# Date-like fragments inside longer text, tried in order by find_date.
_FRAGMENTS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\d{4}-\d{2}-\d{2}"),
    re.compile(r"\d{4}\s*年\s*\d{1,2}\s*月\s*\d{1,2}\s*日"),
    re.compile(r"\d{1,2}\s+de\s+[^\W\d_]+\.?\s+de\s+\d{4}", re.IGNORECASE),
    re.compile(r"[^\W\d_]+\.?\s+\d{1,2},?\s+\d{4}"),
    re.compile(r"\d{1,2}\.?\s+[^\W\d_]+\.?\s+\d{4}"),
    re.compile(r"\d{1,2}/\d{1,2}/\d{4}"),
)

# dateutil fills missing components from its default; two different defaults
# expose a partial date.
_DEFAULTS = (datetime(1, 1, 1), datetime(2, 2, 2))


def month_number(name: str) -> int | None:
    """Look up a month name or abbreviation in any supported language."""
    normalized = name.strip().lower().replace(".", "")
    return MONTH_NAMES.get(normalized)


def _build(year: int, month: int, day: int) -> date | None:
    if year < 100:
        year += 2000
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _from_named_month(day: str, month_name: str, year: str) -> date | None:
    month = month_number(month_name)
    if month is None:
        return None
    return _build(int(year), month, int(day))


def parse_date(text: str | None) -> date | None:
    """Parse a date written in any supported locale.

    Accepted forms, in the order they are tried: ISO ``2024-11-14``,
    ``November 14, 2024``, ``14 November 2024`` / ``14. November 2024``,
    ``14 de noviembre de 2024``, ``2024年11月14日`` and day-first numeric
    ``14/11/2024``. Anything else goes to dateutil's parser with
    ``dayfirst=True``, which must find a day, a month and a year.

    Returns:
        The date, or None when the text cannot be parsed.
    """
    cleaned = " ".join((text or "").split())
    if not cleaned:
        return None

    match = _ISO.match(cleaned)
    if match:
        return _build(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _MONTH_DAY_YEAR.match(cleaned)
    if match:
        parsed = _from_named_month(match.group(2), match.group(1), match.group(3))
        if parsed:
            return parsed

    match = _DAY_MONTH_YEAR.match(cleaned)
    if match:
        parsed = _from_named_month(match.group(1), match.group(2), match.group(3))
        if parsed:
            return parsed

    match = _SPANISH.match(cleaned)
    if match:
        parsed = _from_named_month(match.group(1), match.group(2), match.group(3))
        if parsed:
            return parsed

    match = _JAPANESE.match(cleaned)
    if match:
        return _build(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = _NUMERIC.match(cleaned)
    if match:
        return _build(int(match.group(3)), int(match.group(2)), int(match.group(1)))

    try:
        first, second = (
            dateutil_parser.parse(cleaned, dayfirst=True, default=default).date()
            for default in _DEFAULTS
        )
    except (ValueError, OverflowError):
        return None
    return first if first == second else None


def find_date(text: str | None) -> date | None:
    """Return the first parseable date embedded in a longer string."""
    for pattern in _FRAGMENTS:
        for match in pattern.finditer(text or ""):
            parsed = parse_date(match.group(0))
            if parsed:
                return parsed
    return None


def format_date(value: date | None) -> str:
    """Render a date as ``YYYY-MM-DD``, or an empty string."""
    return value.isoformat() if value else ""
