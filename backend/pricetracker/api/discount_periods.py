"""Discount period utility endpoint"""
from fastapi import APIRouter

from pricetracker.schemas.price import DiscountPeriodRequest, DiscountPeriodResponse
from pricetracker.services.discount import (
    discount_start_key,
    format_discount_period,
    is_discount_active,
    parse_discount_period,
    seoul_today,
)

router = APIRouter()


@router.post("/format", response_model=DiscountPeriodResponse)
async def format_period(data: DiscountPeriodRequest):
    """Canonicalise a discount period string and report whether it is active."""
    today = data.today or seoul_today()
    period = parse_discount_period(data.discount_period, today)

    return DiscountPeriodResponse(
        original=data.discount_period,
        formatted=format_discount_period(data.discount_period, today),
        parsable=period is not None,
        start=period.start if period else None,
        end=period.end if period else None,
        start_key=discount_start_key(data.discount_period, today),
        is_active=is_discount_active(data.discount_period, today),
    )
