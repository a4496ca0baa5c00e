"""Gift card balance and ledger (Your Account > Gift card balance)."""

from __future__ import annotations

from dataclasses import dataclass
import re

from bs4 import BeautifulSoup

from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.patterns import find_order_id
from orderharvest.amazon.urls import absolute_url, gift_card_url
from orderharvest.core.dates import parse_date
from orderharvest.core.dedup import RecordAccumulator, gift_card_key, sort_by_date_desc
from orderharvest.core.document import (
    DocumentAccessor,
    NodeHandle,
    first_attribute,
    first_text,
    page_text,
)
from orderharvest.core.errors import NavigationFailure, RecordRejected
from orderharvest.core.money import MONEY_PATTERN, Money, parse_money
from orderharvest.core.records import GiftCardEntryType, GiftCardLedgerEntry
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

BALANCE_SELECTORS = (
    '[data-testid="gc-balance"]',
    "#gc-balance",
    ".gc-balance",
    "#gc-current-balance",
    '[class*="gift-card-balance"]',
    '[class*="gc-balance"]',
    ".a-size-large.a-color-price",
)
LEDGER_ROWS = "table.a-bordered tbody tr"
ORDER_LINK = 'a[href*="order"]'
NEXT_PAGE = "ul.a-pagination li.a-last:not(.a-disabled) a"

_BALANCE_TEXT = re.compile(
    r"(?:Gift Card Balance|Your Balance|Current Balance|Available Balance)[:\s]*\n?\s*"
    rf"({MONEY_PATTERN.pattern})",
    re.IGNORECASE,
)
_CLAIM_CODE = re.compile(r"Claim code:\s*([^;]+)", re.IGNORECASE)
_SERIAL_NUMBER = re.compile(r"Serial number:\s*(\d+)", re.IGNORECASE)
_ORDER_ID_PARAM = re.compile(r"orderI[Dd]=([^&]+)")
_CODE_FRAGMENTS = re.compile(
    r";?\s*(?:Claim code:\s*[^;]+|Serial number:\s*\d+)\s*;?", re.IGNORECASE
)


@dataclass(frozen=True, slots=True)
class LedgerRow:
    """Raw cells of one ledger table row."""

    date: str
    description: str
    amount: str
    closing_balance: str
    order_href: str | None = None


def clean_description(text: str) -> str:
    """Collapse whitespace and drop claim codes and serial numbers."""
    without_codes = _CODE_FRAGMENTS.sub("; ", text)
    return " ".join(without_codes.split()).strip(" ;")


def classify_entry(
    description: str, amount: Money, order_id: str | None
) -> GiftCardEntryType:
    lowered = description.lower()
    if "applied" in lowered and order_id:
        return GiftCardEntryType.APPLIED
    if "refund" in lowered:
        return GiftCardEntryType.REFUND
    if "gift card added" in lowered or "claim code" in lowered:
        return GiftCardEntryType.ADDED
    if "reload" in lowered:
        return GiftCardEntryType.RELOAD
    if "promotional" in lowered or "promo" in lowered:
        return GiftCardEntryType.PROMOTIONAL
    if amount.amount < 0:
        return GiftCardEntryType.APPLIED
    if amount.amount > 0:
        return GiftCardEntryType.ADDED
    return GiftCardEntryType.UNKNOWN


def parse_ledger_row(
    row: LedgerRow, currency: str, region: str | None = None
) -> GiftCardLedgerEntry:
    """Build a ledger entry from one row's cells.

    Raises:
        RecordRejected: If the date cell cannot be parsed
    """
    entry_date = parse_date(row.date)
    if entry_date is None:
        msg = f"unparseable ledger date {row.date!r}"
        raise RecordRejected(msg)

    amount = parse_money(row.amount, currency)
    href_match = _ORDER_ID_PARAM.search(row.order_href or "")
    order_id = href_match.group(1) if href_match else find_order_id(row.description)
    claim_code = _CLAIM_CODE.search(row.description)
    serial_number = _SERIAL_NUMBER.search(row.description)
    return GiftCardLedgerEntry(
        date=entry_date,
        description=clean_description(row.description),
        amount=amount,
        closing_balance=parse_money(row.closing_balance, currency),
        type=classify_entry(row.description, amount, order_id),
        order_id=order_id,
        claim_code=claim_code.group(1).strip() if claim_code else None,
        serial_number=serial_number.group(1) if serial_number else None,
        region=region,
    )


def finalize_entries(entries: list[GiftCardLedgerEntry]) -> list[GiftCardLedgerEntry]:
    """Dedupe and sort newest first."""
    unique = RecordAccumulator(gift_card_key, entries).records
    return sort_by_date_desc(unique, lambda entry: entry.date)


def extract_gift_card_entries_from_html(
    html: str, currency: str = "GBP", region: str | None = None
) -> list[GiftCardLedgerEntry]:
    """Parse ledger entries from saved gift card page HTML."""
    soup = BeautifulSoup(html, "html.parser")
    entries: list[GiftCardLedgerEntry] = []
    for tr in soup.select(LEDGER_ROWS):
        cells = tr.find_all("td")
        if len(cells) < 4:
            continue
        link = cells[1].select_one(ORDER_LINK)
        href = link.get("href") if link is not None else None
        row = LedgerRow(
            date=cells[0].get_text(" ", strip=True),
            description=cells[1].get_text(" ", strip=True),
            amount=cells[2].get_text(" ", strip=True),
            closing_balance=cells[3].get_text(" ", strip=True),
            order_href=href if isinstance(href, str) else None,
        )
        try:
            entries.append(parse_ledger_row(row, currency, region))
        except RecordRejected:
            continue
    return finalize_entries(entries)


class GiftCardExtractor:
    """Reads the balance and ledger rows of the gift card page currently loaded."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        region: str,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._region = region
        self._currency = currency_for_region(region)
        self._logger = logger or AmazonExtractionLogger()

    async def balance(self) -> Money | None:
        document = self._document
        currency = self._currency

        async def from_selectors() -> Money | None:
            text = await first_text(document, BALANCE_SELECTORS)
            return parse_money(text, currency) if re.search(r"\d", text) else None

        async def from_first_row() -> Money | None:
            rows = await self._rows()
            return parse_money(rows[0].closing_balance, currency) if rows else None

        async def from_page_text() -> Money | None:
            match = _BALANCE_TEXT.search(await page_text(document))
            return parse_money(match.group(1), currency) if match else None

        return await self._runner.first(
            [
                Strategy("balance_selectors", from_selectors),
                Strategy("latest_closing_balance", from_first_row),
                Strategy("balance_text", from_page_text),
            ],
            None,
            label="gift_card.balance",
        )

    async def _cells(self, tr: NodeHandle) -> list[str]:
        return [
            " ".join((await self._document.read_text(td)).split())
            for td in await self._document.query("td", tr)
        ]

    async def _rows(self) -> list[LedgerRow]:
        rows: list[LedgerRow] = []
        for tr in await self._document.query(LEDGER_ROWS):
            cells = await self._cells(tr)
            if len(cells) < 4:
                continue
            rows.append(
                LedgerRow(
                    date=cells[0],
                    description=cells[1],
                    amount=cells[2],
                    closing_balance=cells[3],
                    order_href=await first_attribute(
                        self._document, ORDER_LINK, "href", tr
                    ),
                )
            )
        return rows

    async def entries(self) -> list[GiftCardLedgerEntry]:
        entries: list[GiftCardLedgerEntry] = []
        for index, row in enumerate(await self._rows()):
            try:
                entries.append(parse_ledger_row(row, self._currency, self._region))
            except RecordRejected as e:
                self._logger.record_rejected("gift_card_entry", index, str(e))
            except Exception as e:
                self._logger.record_failed("gift_card_entry", index, e)
        return entries


class GiftCardPages:
    """Gift card ledger as a pagination source for the crawl controller."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        region: str,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._region = region
        self._logger = logger or AmazonExtractionLogger()
        self._extractor = GiftCardExtractor(document, runner, region, self._logger)
        self._page = 0
        self.balance: Money | None = None

    async def open(self) -> None:
        await self._document.navigate(gift_card_url(self._region))
        self._page = 1
        self.balance = await self._extractor.balance()

    async def extract(self) -> list[GiftCardLedgerEntry]:
        entries = await self._extractor.entries()
        self._logger.gift_card_page(self._page, len(entries))
        return entries

    async def has_next(self) -> bool:
        return bool(await self._document.query(NEXT_PAGE))

    async def go_next(self) -> None:
        href = await first_attribute(self._document, NEXT_PAGE, "href")
        if not href:
            raise NavigationFailure(self._document.current_url(), "no next page link")
        self._page += 1
        await self._document.navigate(
            absolute_url(self._region, href), wait_for=LEDGER_ROWS
        )
