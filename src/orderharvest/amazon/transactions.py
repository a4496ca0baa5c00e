"""Payment transactions shown on an order's detail page.

``parse_card_info`` and ``parse_transaction_text`` are shared with the
account-wide transactions page extractor.
"""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
import re

from orderharvest.amazon.items import LAYOUT_TIMEOUT
from orderharvest.amazon.logger import AmazonExtractionLogger
from orderharvest.amazon.order_details import read_charge_summary
from orderharvest.amazon.patterns import find_order_ids
from orderharvest.core.dates import find_date
from orderharvest.core.document import DocumentAccessor, first_node, first_text
from orderharvest.core.money import MONEY_PATTERN, Money, money_from_amount, parse_money
from orderharvest.core.records import OrderHeader, PaymentTransaction
from orderharvest.core.regions import currency_for_region
from orderharvest.core.strategy import Strategy, StrategyRunner

_MASKED_CARD = re.compile(r"([A-Za-z][A-Za-z0-9. ]{2,49})\s*[•*]{3,4}\s*(\d{3,4})")
_CARD_PATTERNS = (
    re.compile(r"(\w+)\s+ending\s+in\s+(\d{4})", re.IGNORECASE),
    re.compile(r"(\w+)\s*\*+(\d{4})", re.IGNORECASE),
    re.compile(r"(\w+)\s+x{3,4}(\d{4})", re.IGNORECASE),
    re.compile(r"(\w+)\s+\.{3,4}(\d{4})", re.IGNORECASE),
)
_BARE_MASK = re.compile(r"[•*]{3,4}\s*(\d{3,4})")
_CARD_TYPES = ("Visa", "Mastercard", "Amex", "American Express", "Discover")
_GIFT_CARD = re.compile(
    r"Amazon Gift Card|Amazon-Geschenkgutschein|Carte cadeau Amazon|Buono Regalo Amazon",
    re.IGNORECASE,
)
_SIGNED_MONEY = re.compile(rf"([+\-−])?\s*({MONEY_PATTERN.pattern})")
_STATUS_WORDS = re.compile(
    r"\b(Pending|Charged|Refunded|Completed|Berechnet|Erstattet|Ausstehend|En attente|Débité)\b",
    re.IGNORECASE,
)
_CARD_FRAGMENT = re.compile(
    r"(?:Visa|Mastercard|Amex|American Express|Discover|Debit)[^*•\n]*[*•]{3,4}\s*\d{3,4}"
    r"|ending\s*in\s*\d{4}|[*•]{3,4}\s*\d{3,4}",
    re.IGNORECASE,
)
_DATE_FRAGMENT = re.compile(
    r"\b\w+\s+\d{1,2},?\s+\d{4}\b|\b\d{1,2}\.?\s+\w+\.?\s+\d{4}\b|\b\d{4}-\d{2}-\d{2}\b"
    r"|\b\d{1,2}[./-]\d{1,2}[./-]\d{2,4}\b"
)
CHARGE_LINES = '[class*="charge"], [class*="payment-line"]'
_EXCLUDED_CHARGE_WORDS = ("subtotal", "shipping", "tax")
TRANSACTION_ROWS = '.transaction-row, [class*="transaction-item"]'
TRANSACTION_LINKS = 'a[data-testid="transaction-link"]'
DATE_CONTAINER = 'div[class*="transaction-date-container"]'
LINE_ITEM = 'div[class*="transactions-line-item"]'


@dataclass(frozen=True, slots=True)
class CardInfo:
    vendor: str
    card_info: str


def parse_card_info(text: str | None) -> CardInfo:
    """Split payment instrument text into a vendor and a masked card string.

    Handles ``Visa ••••1234``, ``Visa ending in 1234``, ``*1234`` style
    masks, gift cards in several languages, promotional credit and rewards.
    """
    normalized = " ".join((text or "").split())

    match = _MASKED_CARD.search(normalized)
    if match:
        return CardInfo(match.group(1).strip(), f"****{match.group(2)}")

    for pattern in _CARD_PATTERNS:
        match = pattern.search(normalized)
        if match:
            return CardInfo(match.group(1), f"****{match.group(2)}")

    match = _BARE_MASK.search(normalized)
    if match:
        return CardInfo("Unknown", f"****{match.group(1)}")

    lowered = normalized.lower()
    for card_type in _CARD_TYPES:
        if card_type.lower() in lowered:
            return CardInfo(card_type, normalized)

    if _GIFT_CARD.search(normalized):
        return CardInfo("Amazon Gift Card", "Gift Card")
    if "promotional" in lowered:
        return CardInfo("Promotional Credit", "Credit")
    if "reward" in lowered:
        return CardInfo("Amazon Rewards", "Rewards")
    return CardInfo("Unknown", normalized or "Unknown")


def signed_amount(
    text: str | None, currency: str, *, unsigned_is_debit: bool = False
) -> Money | None:
    """First amount in ``text`` with an explicit ``+``/``-`` sign honored.

    Args:
        text: Running text containing an amount
        currency: Currency used when the text names none
        unsigned_is_debit: Treat an amount without a sign as a charge

    Returns:
        Money, or None when the text holds no amount.
    """
    match = _SIGNED_MONEY.search(text or "")
    if match is None:
        return None
    money = parse_money(match.group(2), currency)
    sign = match.group(1)
    if sign in ("-", "−") or (sign is None and unsigned_is_debit):
        return money_from_amount(-abs(money.amount), money.currency)
    if sign == "+":
        return money_from_amount(abs(money.amount), money.currency)
    return money


def _vendor_from_text(text: str) -> str:
    remainder = text
    for pattern in (_CARD_FRAGMENT, _SIGNED_MONEY, _STATUS_WORDS, _DATE_FRAGMENT):
        remainder = pattern.sub("\n", remainder)
    for order_id in find_order_ids(text):
        remainder = remainder.replace(order_id, "\n")
    parts = [part.strip(" -:|,") for part in re.split(r"\n|\s{2,}", remainder)]
    candidates = [part for part in parts if part and re.search(r"[A-Za-z]", part)]
    return candidates[-1] if candidates else ""


def parse_transaction_text(
    text: str,
    *,
    currency: str,
    date: dt.date | None = None,
    order_ids: list[str] | None = None,
    source: str = "",
    unsigned_is_debit: bool = False,
) -> PaymentTransaction | None:
    """Build a transaction from one row of running text.

    The date and order ids found in the text win over the fallbacks passed
    in. Returns None when no date or no amount can be found.
    """
    found_date = find_date(text)
    amount = signed_amount(text, currency, unsigned_is_debit=unsigned_is_debit)
    row_date = found_date or date
    if row_date is None or amount is None or amount.is_zero:
        return None

    status = _STATUS_WORDS.search(text)
    card = parse_card_info(text)
    vendor = _vendor_from_text(text) or card.vendor
    return PaymentTransaction(
        date=row_date,
        order_ids=find_order_ids(text) or list(order_ids or []),
        vendor=vendor,
        card_info=card.card_info,
        amount=amount,
        status=status.group(1) if status else None,
        source=source,
    )


class OrderTransactionExtractor:
    """Reads payment transactions from the order detail page currently loaded."""

    def __init__(
        self,
        document: DocumentAccessor,
        runner: StrategyRunner,
        logger: AmazonExtractionLogger | None = None,
    ) -> None:
        self._document = document
        self._runner = runner
        self._logger = logger or AmazonExtractionLogger()

    async def extract(self, header: OrderHeader) -> list[PaymentTransaction]:
        probes = {
            "payment_summary": lambda: self._payment_summary(header),
            "transaction_rows": lambda: self._rows(header, TRANSACTION_ROWS),
            "charge_lines": lambda: self._charge_lines(header),
            "date_containers": lambda: self._date_containers(header),
            "transaction_links": lambda: self._rows(header, TRANSACTION_LINKS),
            "payment_status": lambda: self._payment_status(header),
            "total_fallback": lambda: self._total_fallback(header),
        }
        outcome = await self._runner.run(
            [Strategy(name, probe, LAYOUT_TIMEOUT) for name, probe in probes.items()],
            [],
            label=f"transactions.{header.id}",
        )
        self._logger.transactions_extracted(len(outcome.value), outcome.strategy)
        return outcome.value

    @staticmethod
    def _order_date(header: OrderHeader) -> dt.date:
        return header.date or dt.date.today()

    def _transaction(
        self, header: OrderHeader, amount: Money, card: CardInfo, source: str
    ) -> PaymentTransaction:
        return PaymentTransaction(
            date=self._order_date(header),
            order_ids=[header.id],
            vendor=card.vendor,
            card_info=card.card_info,
            amount=amount,
            source=source,
        )

    async def _payment_summary(self, header: OrderHeader) -> list[PaymentTransaction]:
        section = await first_node(
            self._document,
            '[data-component="paymentInformation"], '
            '[data-component="viewPaymentPlanSummaryWidget"], #od-subtotals',
        )
        if section is None:
            return []
        currency = currency_for_region(header.region)
        total = (await read_charge_summary(self._document, currency)).get("grand_total")
        if total is None or total.amount <= 0:
            return []

        method = ""
        for node in await self._document.query(
            '#od-subtotals .a-row, [class*="payment-method"], '
            '[data-component="viewPaymentPlanSummaryWidget"]'
        ):
            text = await self._document.read_text(node)
            if re.search(r"ending|Visa|Mastercard|Amex|[•*]{3}", text, re.IGNORECASE):
                method = text
                break
        card = parse_card_info(method)
        return [self._transaction(header, total, card, "payment_summary")]

    async def _rows(
        self, header: OrderHeader, selector: str
    ) -> list[PaymentTransaction]:
        currency = currency_for_region(header.region)
        transactions: list[PaymentTransaction] = []
        for row in await self._document.query(selector):
            transaction = parse_transaction_text(
                await self._document.read_text(row),
                currency=currency,
                date=self._order_date(header),
                order_ids=[header.id],
                source="order_page",
            )
            if transaction is not None and transaction.amount.amount > 0:
                transactions.append(transaction)
        return transactions

    async def _charge_lines(self, header: OrderHeader) -> list[PaymentTransaction]:
        currency = currency_for_region(header.region)
        transactions: list[PaymentTransaction] = []
        for node in await self._document.query(CHARGE_LINES):
            text = await self._document.read_text(node)
            if any(word in text.lower() for word in _EXCLUDED_CHARGE_WORDS):
                continue
            amount = signed_amount(text, currency)
            if amount is None or amount.is_zero:
                continue
            transactions.append(
                self._transaction(header, amount, parse_card_info(text), "charge_line")
            )
        return transactions

    async def _date_containers(self, header: OrderHeader) -> list[PaymentTransaction]:
        """Date headings followed by their line items, walked in document order."""
        currency = currency_for_region(header.region)
        transactions: list[PaymentTransaction] = []
        current_date: dt.date | None = None
        nodes = await self._document.query(
            f"{DATE_CONTAINER}, {LINE_ITEM}"
        )
        for node in nodes:
            text = await self._document.read_text(node)
            classes = await self._document.read_attribute(node, "class") or ""
            if "transaction-date-container" in classes:
                current_date = find_date(text)
                continue
            if current_date is None:
                continue
            transaction = parse_transaction_text(
                text,
                currency=currency,
                date=current_date,
                order_ids=[header.id],
                source="date_container",
            )
            if transaction is not None:
                transactions.append(transaction)
        return transactions

    async def _payment_status(self, header: OrderHeader) -> list[PaymentTransaction]:
        currency = currency_for_region(header.region)
        transactions: list[PaymentTransaction] = []
        seen_amounts: set[object] = set()
        for node in await self._document.query("div.a-box-inner, div.a-row"):
            text = await self._document.read_text(node)
            status = _STATUS_WORDS.search(text)
            if status is None:
                continue
            amount = signed_amount(text, currency)
            if amount is None or amount.is_zero or amount.amount in seen_amounts:
                continue
            seen_amounts.add(amount.amount)
            card = parse_card_info(text)
            transactions.append(
                PaymentTransaction(
                    date=self._order_date(header),
                    order_ids=find_order_ids(text) or [header.id],
                    vendor=card.vendor,
                    card_info=card.card_info,
                    amount=amount,
                    status=status.group(1),
                    source="payment_status",
                )
            )
        return transactions

    async def _total_fallback(self, header: OrderHeader) -> list[PaymentTransaction]:
        currency = currency_for_region(header.region)
        for selector in (
            ".grand-total-price",
            '[class*="order-total"]',
            "#od-subtotals .a-text-right.a-span-last",
            ".order-summary-total",
        ):
            amount = parse_money(await first_text(self._document, selector), currency)
            if amount.amount > 0:
                return [
                    self._transaction(
                        header, amount, CardInfo("Unknown", "Unknown"), "total_fallback"
                    )
                ]
        return []


async def extract_order_transactions(
    document: DocumentAccessor,
    header: OrderHeader,
    runner: StrategyRunner,
    logger: AmazonExtractionLogger | None = None,
) -> list[PaymentTransaction]:
    """Functional form of ``OrderTransactionExtractor.extract``."""
    return await OrderTransactionExtractor(document, runner, logger).extract(header)
