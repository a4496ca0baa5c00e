from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import os

from dotenv import load_dotenv

from orderharvest.core.regions import get_region_by_code, get_region_codes


class ItemCountCheck(str, Enum):
    """How the fast path's item count is compared with the expected count.

    AT_LEAST: accept when the fast path found at least the expected items.
    EXACT: accept only on an exact match.
    IGNORE: accept whenever the fast path found any item.
    """

    AT_LEAST = "at_least"
    EXACT = "exact"
    IGNORE = "ignore"


@dataclass(frozen=True, slots=True)
class ExtractionConfig:
    """Tunables for probing, crawling and batch enrichment."""

    default_region: str = "us"
    probe_timeout: float = 1.0
    navigation_timeout: float = 15.0
    max_scrolls: int = 50
    stability_threshold: int = 3
    gift_card_max_pages: int = 10
    item_count_check: ItemCountCheck = ItemCountCheck.AT_LEAST
    skip_statuses: frozenset[str] = field(
        default_factory=lambda: frozenset({"cancelled"})
    )

    def __post_init__(self) -> None:
        if self.probe_timeout <= 0:
            msg = "probe_timeout must be positive"
            raise ValueError(msg)
        if self.stability_threshold < 1:
            msg = "stability_threshold must be at least 1"
            raise ValueError(msg)
        if self.max_scrolls < 1:
            msg = "max_scrolls must be at least 1"
            raise ValueError(msg)


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def load_extraction_config_from_env() -> ExtractionConfig:
    """Load extraction config from env (and a ``.env`` file, if present)."""
    load_dotenv()

    region = os.environ.get("ORDERHARVEST_REGION", "us").strip().lower()
    if get_region_by_code(region) is None:
        raise ValueError(
            f"ORDERHARVEST_REGION must be one of: {', '.join(get_region_codes())}"
        )

    check_value = os.environ.get(
        "ORDERHARVEST_ITEM_COUNT_CHECK", ItemCountCheck.AT_LEAST.value
    ).strip()
    try:
        item_count_check = ItemCountCheck(check_value)
    except ValueError as e:
        raise ValueError(
            "ORDERHARVEST_ITEM_COUNT_CHECK must be one of: at_least, exact, ignore"
        ) from e

    skip_raw = os.environ.get("ORDERHARVEST_SKIP_STATUSES", "cancelled")
    skip_statuses = frozenset(
        status.strip().lower() for status in skip_raw.split(",") if status.strip()
    )

    return ExtractionConfig(
        default_region=region,
        probe_timeout=_float_env("ORDERHARVEST_PROBE_TIMEOUT", 1.0),
        navigation_timeout=_float_env("ORDERHARVEST_NAVIGATION_TIMEOUT", 15.0),
        max_scrolls=_int_env("ORDERHARVEST_MAX_SCROLLS", 50),
        stability_threshold=_int_env("ORDERHARVEST_STABILITY_THRESHOLD", 3),
        gift_card_max_pages=_int_env("ORDERHARVEST_GIFT_CARD_MAX_PAGES", 10),
        item_count_check=item_count_check,
        skip_statuses=skip_statuses,
    )
