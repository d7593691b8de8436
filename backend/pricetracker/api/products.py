"""Product price endpoints - history, cross-store comparison, summary"""
from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pricetracker.core.database import get_db
from pricetracker.models.store import Store
from pricetracker.schemas.price import (
    ChartPointResponse,
    PriceHistoryResponse,
    PriceRecordResponse,
    PriceSummaryResponse,
    StoreComparisonResponse,
)
from pricetracker.services.discount import (
    discount_start_display,
    format_discount_period,
    is_discount_active,
    seoul_today,
)
from pricetracker.services.price_history import (
    PriceRecord,
    compare_stores,
    dedupe_price_records,
    discount_chart_points,
    discount_percent,
    find_lowest_price,
    summarize_prices,
)
from pricetracker.services.price_service import PriceService

router = APIRouter()


def to_response(
    record: PriceRecord, today: date, store_names: Dict[str, str]
) -> PriceRecordResponse:
    return PriceRecordResponse(
        id=record.id,
        product_id=record.product_id,
        store_id=record.store_id,
        store_name=store_names.get(record.store_id),
        recorded_at=record.recorded_at,
        selling_price=record.selling_price,
        current_price=record.current_price,
        discount_amount=record.discount_amount,
        discounted_price=record.discounted_price,
        discount_percent=discount_percent(record),
        discount_period=format_discount_period(record.discount_period, today),
        discount_start=discount_start_display(record.discount_period, today),
        is_discount_active=is_discount_active(record.discount_period, today),
    )


async def _store_names(db: AsyncSession) -> Dict[str, str]:
    result = await db.execute(select(Store.id, Store.name))
    return {store_id: name for store_id, name in result.all()}


async def _load(db: AsyncSession, product_id: str, store_id: Optional[str] = None):
    service = PriceService(db)
    product = await service.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    records = await service.get_price_records(product_id, store_id)
    return product, records


@router.get("/{product_id}/prices", response_model=PriceHistoryResponse)
async def get_price_history(
    product_id: str,
    store_id: Optional[str] = Query(None, description="Only this store's history"),
    today: Optional[date] = Query(None, description="Override the Asia/Seoul civil date"),
    db: AsyncSession = Depends(get_db),
):
    """
    Price history for a product, newest first.

    Registrations of the same discount event (same start date and price)
    are collapsed to the most recent one.
    """
    today = today or seoul_today()
    product, records = await _load(db, product_id, store_id)
    unique = dedupe_price_records(records, today)
    store_names = await _store_names(db)

    return PriceHistoryResponse(
        product_id=product_id,
        product_name=product.name,
        records=[to_response(r, today, store_names) for r in unique],
        count=len(unique),
    )


@router.get("/{product_id}/comparison", response_model=StoreComparisonResponse)
async def get_store_comparison(
    product_id: str,
    today: Optional[date] = Query(None, description="Override the Asia/Seoul civil date"),
    db: AsyncSession = Depends(get_db),
):
    """Latest price per store: lowest overall, active discounts first, then regular prices."""
    today = today or seoul_today()
    _, records = await _load(db, product_id)
    store_names = await _store_names(db)

    comparison = compare_stores(records, today)
    lowest = find_lowest_price(records)

    return StoreComparisonResponse(
        product_id=product_id,
        lowest=to_response(lowest, today, store_names) if lowest else None,
        discount_stores=[to_response(r, today, store_names) for r in comparison.discount_stores],
        regular_stores=[to_response(r, today, store_names) for r in comparison.regular_stores],
        as_of=today,
    )


@router.get("/{product_id}/summary", response_model=PriceSummaryResponse)
async def get_price_summary(
    product_id: str,
    today: Optional[date] = Query(None, description="Override the Asia/Seoul civil date"),
    db: AsyncSession = Depends(get_db),
):
    """Max discount, highest and lowest price, and the discount price chart."""
    today = today or seoul_today()
    _, records = await _load(db, product_id)
    summary = summarize_prices(records)
    chart = discount_chart_points(dedupe_price_records(records, today), today)

    return PriceSummaryResponse(
        product_id=product_id,
        max_discount_amount=summary.max_discount_amount,
        highest_selling_price=summary.highest_selling_price,
        lowest_current_price=summary.lowest_current_price,
        chart=[ChartPointResponse(date=p.date, price=p.price, recorded_at=p.recorded_at) for p in chart],
    )
