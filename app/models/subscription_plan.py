"""Subscription Plan Model - Purchasable token bundles"""
import uuid

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from sqlalchemy.sql import func
from app.database import Base, utcnow


class SubscriptionPlan(Base):
    """Subscription Plan Model

    duration_days is 0 for one-time token packs
    """
    __tablename__ = "subscription_plans"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), unique=True, nullable=False)
    tokens = Column(Integer, nullable=False)
    price = Column(Numeric(precision=10, scale=2), nullable=False)
    duration_days = Column(Integer, default=0, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<SubscriptionPlan(id={self.id}, name='{self.name}', tokens={self.tokens})>"
