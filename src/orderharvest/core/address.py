"""Shipping address splitting."""

from __future__ import annotations

import html
import re

MAX_ADDRESS_LINES = 7

_BREAK = re.compile(r"<br\s*/?>|\r?\n", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_UK_POSTCODE = re.compile(
    r"^(.+?)\s+([A-Z]{1,2}\d{1,2}[A-Z]?\s*\d[A-Z]{2})(.*)$", re.IGNORECASE
)


def clean_text(text: str | None) -> str:
    """Collapse all whitespace runs to single spaces and trim."""
    return " ".join((text or "").split())


def split_address_lines(raw: str | None) -> list[str]:
    """Split an address fragment (text or markup) into display lines.

    Entities are decoded, ``<br>`` and newlines become line breaks and any
    remaining tags are stripped. A postcode embedded after a town name is
    moved onto its own line, e.g. ``"LONDON SW1A 1AA"`` becomes
    ``["LONDON", "SW1A 1AA"]``. Consecutive duplicate lines (a name that
    appears twice) are dropped and the result is capped at seven lines.
    """
    decoded = html.unescape(raw or "")

    lines: list[str] = []
    for part in _BREAK.split(decoded):
        line = clean_text(_TAG.sub("", part))
        if not line:
            continue
        match = _UK_POSTCODE.match(line)
        if match:
            lines.append(match.group(1).strip())
            lines.append(match.group(2).strip())
            trailing = match.group(3).strip()
            if trailing:
                lines.append(trailing)
        else:
            lines.append(line)

    deduped: list[str] = []
    for line in lines:
        if line and (not deduped or deduped[-1] != line):
            deduped.append(line)
    return deduped[:MAX_ADDRESS_LINES]


def address_lines_to_columns(lines: list[str]) -> dict[str, str]:
    """Spread address lines over the fixed ``line1`` .. ``line7`` slots."""
    padded = [*lines[:MAX_ADDRESS_LINES]]
    padded += [""] * (MAX_ADDRESS_LINES - len(padded))
    return {f"line{index}": value for index, value in enumerate(padded, start=1)}
