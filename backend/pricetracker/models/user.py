"""User profile and point ledger models"""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from pricetracker.core.database import Base


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(String(36), primary_key=True)
    nickname = Column(String(50))

    # points = confirmed_points; pending points are not spendable yet
    points = Column(Integer, nullable=False, default=0)
    pending_points = Column(Integer, nullable=False, default=0)
    confirmed_points = Column(Integer, nullable=False, default=0)

    unique_stores_visited = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("user_profiles.id"), nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, confirmed
    reason = Column(String(50), nullable=False)
    price_history_id = Column(String(36), ForeignKey("price_history.id"))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_point_tx_user_status", "user_id", "status"),
    )
