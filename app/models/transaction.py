"""Wallet Transaction Model - Append-only ledger of balance changes"""
import enum
import uuid

from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Enum,
    Index,
    JSON,
    CheckConstraint,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from app.database import Base, utcnow


class TransactionType(str, enum.Enum):
    """Transaction Types"""
    CREDIT = "credit"  # Purchase, welcome bonus
    DEBIT = "debit"    # Service consumption


class WalletTransaction(Base):
    """Wallet Transaction Model

    Immutable audit record; rows are inserted and never updated or deleted.
    change_amount is positive for credits and negative for debits.
    """
    __tablename__ = "wallet_transactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    wallet_id = Column(String(36), ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False)

    change_amount = Column(Integer, nullable=False)
    type = Column(
        Enum(TransactionType, values_callable=lambda e: [m.value for m in e], name="transactiontype"),
        nullable=False,
    )
    reason = Column(String(255), nullable=False)
    meta_data = Column("metadata", JSON().with_variant(JSONB, "postgresql"))
    balance_after = Column(Integer, nullable=False)

    # Optional client key making a retried debit a no-op
    idempotency_key = Column(String(255))

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("change_amount <> 0", name="ck_transaction_amount_non_zero"),
        UniqueConstraint("wallet_id", "idempotency_key", name="uq_transaction_idempotency"),
        Index("idx_transaction_wallet_created", "wallet_id", "created_at"),
    )

    def __repr__(self):
        return f"<WalletTransaction(id={self.id}, type={self.type}, change_amount={self.change_amount})>"
