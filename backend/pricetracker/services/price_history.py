"""Price history reconciliation - dedupe, per-store latest, lowest price, discount grouping.

Everything here works on already-fetched records and is deterministic for a
given input list and ``today``.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from pricetracker.core.config import settings
from pricetracker.services.discount import (
    discount_start_display,
    discount_start_key,
    is_discount_active,
    seoul_today,
)


@dataclass
class PriceRecord:
    """A single price observation for a product at a store."""
    product_id: str
    store_id: str
    recorded_at: datetime
    selling_price: int
    current_price: int
    discount_period: Optional[str] = None
    discount_amount: Optional[int] = None
    discounted_price: Optional[int] = None
    id: Optional[str] = None
    user_id: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "PriceRecord":
        """
        Build a record from a ``PriceHistory`` row.

        Rows written before normalization only carry the overloaded
        ``discount_price`` column; those go through ``resolve_discount``.
        """
        discount_amount = row.discount_amount
        discounted_price = row.discounted_price
        if discount_amount is None and discounted_price is None:
            discount_amount, discounted_price = resolve_discount(row.selling_price, row.discount_price)

        return cls(
            id=row.id,
            product_id=row.product_id,
            store_id=row.store_id,
            user_id=row.user_id,
            recorded_at=row.recorded_at,
            selling_price=row.selling_price,
            current_price=row.current_price,
            discount_period=row.discount_period,
            discount_amount=discount_amount,
            discounted_price=discounted_price,
            image_url=row.image_url,
        )


@dataclass
class StoreComparison:
    """Latest record per store, split into active discounts and regular prices."""
    discount_stores: List[PriceRecord] = field(default_factory=list)
    regular_stores: List[PriceRecord] = field(default_factory=list)


@dataclass
class PriceSummary:
    max_discount_amount: Optional[int] = None
    highest_selling_price: Optional[int] = None
    lowest_current_price: Optional[int] = None


@dataclass
class ChartPoint:
    date: str  # discount start, YY.MM.DD
    price: int
    recorded_at: datetime


def resolve_discount(
    selling_price: int,
    discount_price: Optional[int],
    ratio: Optional[float] = None,
) -> Tuple[Optional[int], Optional[int]]:
    """
    Split the legacy ``discount_price`` value into ``(discount_amount, discounted_price)``.

    Upstream data stores either the amount taken off or the final price in the
    same column. A value above ``ratio`` of the selling price is read as the
    final price; anything else is the amount.
    """
    if not discount_price:
        return None, None

    ratio = settings.DISCOUNTED_PRICE_RATIO if ratio is None else ratio
    if discount_price > selling_price * ratio:
        return selling_price - discount_price, discount_price

    return discount_price, selling_price - discount_price


def discount_percent(record: PriceRecord) -> int:
    if not record.discount_amount or record.discount_amount <= 0 or record.selling_price <= 0:
        return 0
    return round(record.discount_amount / record.selling_price * 100)


def dedupe_key(record: PriceRecord, today: Optional[date] = None) -> Tuple[int, int]:
    return (discount_start_key(record.discount_period, today) or 0, record.current_price)


def dedupe_price_records(records: Iterable[PriceRecord], today: Optional[date] = None) -> List[PriceRecord]:
    """
    Keep the first record per (discount start, current price).

    ``records`` must be ordered newest first, so the survivor of each group is
    the most recent registration of that discount event. Plain prices with no
    period collapse on ``(0, current_price)``.
    """
    today = today or seoul_today()
    seen = set()
    unique = []
    for record in records:
        key = dedupe_key(record, today)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def latest_by_store(records: Iterable[PriceRecord]) -> Dict[str, PriceRecord]:
    """Most recently recorded entry for each store."""
    latest: Dict[str, PriceRecord] = {}
    for record in records:
        existing = latest.get(record.store_id)
        if existing is None or record.recorded_at > existing.recorded_at:
            latest[record.store_id] = record
    return latest


def find_lowest_price(records: Iterable[PriceRecord]) -> Optional[PriceRecord]:
    """
    Cheapest latest-known price across stores.

    Ties on ``current_price`` go to the lexically smallest store id.
    """
    latest = latest_by_store(records)
    if not latest:
        return None
    return min(latest.values(), key=lambda r: (r.current_price, r.store_id))


def is_on_discount(record: PriceRecord, today: Optional[date] = None) -> bool:
    return is_discount_active(record.discount_period, today) and (record.discount_amount or 0) > 0


def compare_stores(records: Iterable[PriceRecord], today: Optional[date] = None) -> StoreComparison:
    """
    Group each store's latest record into discount and regular buckets.

    Discount stores sort by ``current_price``, regular stores by
    ``selling_price``; both fall back to store id.
    """
    today = today or seoul_today()
    comparison = StoreComparison()

    for record in latest_by_store(records).values():
        if is_on_discount(record, today):
            comparison.discount_stores.append(record)
        else:
            comparison.regular_stores.append(record)

    comparison.discount_stores.sort(key=lambda r: (r.current_price, r.store_id))
    comparison.regular_stores.sort(key=lambda r: (r.selling_price, r.store_id))
    return comparison


def summarize_prices(records: Iterable[PriceRecord]) -> PriceSummary:
    records = list(records)
    if not records:
        return PriceSummary()

    return PriceSummary(
        max_discount_amount=max([r.discount_amount or 0 for r in records] + [0]),
        highest_selling_price=max(r.selling_price for r in records),
        lowest_current_price=min(r.current_price for r in records),
    )


def discount_chart_points(records: Iterable[PriceRecord], today: Optional[date] = None) -> List[ChartPoint]:
    """Discounted prices keyed by discount start date, oldest registration first."""
    today = today or seoul_today()
    points = []
    for record in records:
        if not record.discount_amount or record.discount_amount <= 0:
            continue
        start = discount_start_display(record.discount_period, today)
        if not start:
            continue
        points.append(ChartPoint(date=start, price=record.current_price, recorded_at=record.recorded_at))

    points.sort(key=lambda p: p.recorded_at)
    return points
