"""Wallet Model - One token wallet per user"""
import uuid

from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func
from app.database import Base, utcnow


class Wallet(Base):
    """Wallet Model

    Holds the prepaid token balance of a single user.
    The balance always equals the sum of the wallet's transaction amounts.
    """
    __tablename__ = "wallets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(100), unique=True, nullable=False, index=True)
    balance_tokens = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("balance_tokens >= 0", name="ck_wallet_balance_non_negative"),
    )

    def __repr__(self):
        return f"<Wallet(id={self.id}, user_id='{self.user_id}', balance_tokens={self.balance_tokens})>"
