"""Price history model (one row per registered price tag)"""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.sql import func

from pricetracker.core.database import Base


class PriceHistory(Base):
    __tablename__ = "price_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = Column(String(20), ForeignKey("products.product_id"), nullable=False, index=True)
    store_id = Column(String(36), ForeignKey("stores.id"), nullable=False, index=True)
    user_id = Column(String(36), nullable=False, index=True)

    # Prices in won
    selling_price = Column(Integer, nullable=False)
    current_price = Column(Integer, nullable=False)  # price to display and compare

    # Legacy column: holds either a discount amount or the discounted price
    discount_price = Column(Integer)

    # Normalized at ingestion (or by backfill for legacy rows)
    discount_amount = Column(Integer)
    discounted_price = Column(Integer)

    discount_period = Column(String(50))

    image_url = Column(String)
    image_phash = Column(String(64), index=True)

    recorded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("product_id", "store_id", "discount_period", name="uq_price_history_period"),
        Index("ix_price_history_product_recorded", "product_id", "recorded_at"),
    )
