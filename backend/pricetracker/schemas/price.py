"""Price history and comparison schemas"""
from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class PriceRecordResponse(BaseModel):
    """One price history entry as rendered by the client"""
    id: Optional[str] = None
    product_id: str
    store_id: str
    store_name: Optional[str] = None
    recorded_at: datetime

    selling_price: int
    current_price: int = Field(..., description="Effective price to display and compare")
    discount_amount: Optional[int] = None
    discounted_price: Optional[int] = None
    discount_percent: int = 0

    discount_period: Optional[str] = Field(None, description="Canonical YY.MM.DD - YY.MM.DD when parsable")
    discount_start: Optional[str] = Field(None, description="Discount start as YY.MM.DD")
    is_discount_active: bool = False


class PriceHistoryResponse(BaseModel):
    product_id: str
    product_name: Optional[str] = None
    records: List[PriceRecordResponse]
    count: int


class StoreComparisonResponse(BaseModel):
    product_id: str
    lowest: Optional[PriceRecordResponse] = None
    discount_stores: List[PriceRecordResponse] = Field(default_factory=list)
    regular_stores: List[PriceRecordResponse] = Field(default_factory=list)
    as_of: date


class ChartPointResponse(BaseModel):
    date: str
    price: int
    recorded_at: datetime


class PriceSummaryResponse(BaseModel):
    product_id: str
    max_discount_amount: Optional[int] = None
    highest_selling_price: Optional[int] = None
    lowest_current_price: Optional[int] = None
    chart: List[ChartPointResponse] = Field(default_factory=list)


class DiscountPeriodRequest(BaseModel):
    discount_period: Optional[str] = None
    today: Optional[date] = Field(None, description="Override the Asia/Seoul civil date")


class DiscountPeriodResponse(BaseModel):
    original: Optional[str] = None
    formatted: Optional[str] = None
    parsable: bool
    start: Optional[date] = None
    end: Optional[date] = None
    start_key: Optional[int] = None
    is_active: bool
