"""Default file names for exported record sets."""

from __future__ import annotations

import datetime as dt

from orderharvest.export.columns import ExportType


def generate_export_filename(
    export_type: ExportType | str,
    region: str,
    year: int | None = None,
    start_date: dt.date | str | None = None,
    end_date: dt.date | str | None = None,
    today: dt.date | None = None,
) -> str:
    """Build ``amazon-{region}-{type}-{start}-{end}.csv``.

    An explicit start/end range wins. A past year ends on Dec 31 and the
    current year ends today. Without either, the range is the current year
    up to today.

    Example:
        generate_export_filename("orders", "uk", year=2024,
        today=date(2025, 3, 1)) -> "amazon-uk-orders-2024-2024-12-31.csv"
    """
    today = today or dt.date.today()
    kind = ExportType(export_type).value

    if start_date and end_date:
        date_part = f"{_iso(start_date)}-{_iso(end_date)}"
    elif year:
        end = f"{year}-12-31" if year < today.year else today.isoformat()
        date_part = f"{year}-{end}"
    else:
        date_part = f"{today.year}-{today.isoformat()}"

    return f"amazon-{region.lower()}-{kind}-{date_part}.csv"


def _iso(value: dt.date | str) -> str:
    return value.isoformat() if isinstance(value, dt.date) else value
