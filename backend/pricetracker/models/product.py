"""Product model"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func

from pricetracker.core.database import Base


class Product(Base):
    __tablename__ = "products"

    # 7-digit number printed on the price tag
    product_id = Column(String(20), primary_key=True)
    name = Column(String, nullable=False)
    category = Column(String(50), index=True)
    image_url = Column(String)  # price tag photo
    product_image_url = Column(String)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
