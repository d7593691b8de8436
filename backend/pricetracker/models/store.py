"""Store model"""
from sqlalchemy import Column, String, Float, DateTime
from sqlalchemy.sql import func

from pricetracker.core.database import Base


class Store(Base):
    __tablename__ = "stores"

    id = Column(String(36), primary_key=True)
    name = Column(String(100), nullable=False)
    region = Column(String(50), nullable=False, index=True)
    address = Column(String)
    latitude = Column(Float)
    longitude = Column(Float)
    phone = Column(String(20))
    business_hours = Column(String(100))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
