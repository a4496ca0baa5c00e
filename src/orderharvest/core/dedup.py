"""Key-based deduplication of records gathered across pages and phases."""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Iterator
import datetime as dt
from decimal import Decimal
from typing import Generic, TypeVar

from orderharvest.core.records import (
    GiftCardLedgerEntry,
    OrderHeader,
    PaymentTransaction,
)

T = TypeVar("T")

KeyFn = Callable[[T], Hashable]


def header_key(header: OrderHeader) -> str:
    return header.id


def transaction_key(
    transaction: PaymentTransaction,
) -> tuple[dt.date, tuple[str, ...], Decimal]:
    return (
        transaction.date,
        tuple(sorted(transaction.order_ids)),
        transaction.amount.amount,
    )


def gift_card_key(entry: GiftCardLedgerEntry) -> tuple[dt.date, Decimal, str]:
    return (entry.date, entry.amount.amount, entry.order_id or entry.description)


class RecordAccumulator(Generic[T]):
    """Insertion-ordered set of records keyed by a composite identity.

    The first record seen for a key is kept; later duplicates are ignored.
    """

    def __init__(self, key: KeyFn[T], records: Iterable[T] = ()) -> None:
        self._key = key
        self._records: list[T] = []
        self._seen: set[Hashable] = set()
        self.add(records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(self._records)

    @property
    def records(self) -> list[T]:
        return list(self._records)

    def add(self, records: Iterable[T]) -> int:
        """Add records, skipping known keys.

        Returns:
            Number of records that were new.
        """
        added = 0
        for record in records:
            key = self._key(record)
            if key in self._seen:
                continue
            self._seen.add(key)
            self._records.append(record)
            added += 1
        return added

    def truncate(self, limit: int) -> None:
        """Keep only the first ``limit`` records."""
        for record in self._records[limit:]:
            self._seen.discard(self._key(record))
        del self._records[limit:]


def merge_records(
    existing: Iterable[T], incoming: Iterable[T], key: KeyFn[T]
) -> list[T]:
    """Union two result sets, keeping the first-seen record per key."""
    accumulator = RecordAccumulator(key, existing)
    accumulator.add(incoming)
    return accumulator.records


def sort_by_date_desc(
    records: Iterable[T], date_of: Callable[[T], dt.date | None]
) -> list[T]:
    """Newest first; undated records go last. Stable for equal dates."""
    materialized = list(records)
    dated = [record for record in materialized if date_of(record) is not None]
    undated = [record for record in materialized if date_of(record) is None]
    dated.sort(key=date_of, reverse=True)  # type: ignore[arg-type]
    return dated + undated
