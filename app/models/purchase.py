"""Purchase Model - Receipts of completed top-ups"""
import enum
import uuid

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Enum, Index
from sqlalchemy.sql import func
from app.database import Base, utcnow


class PaymentStatus(str, enum.Enum):
    """Payment Status"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Purchase(Base):
    """Purchase Model

    payment_id is unique so an external payment credits tokens at most once
    """
    __tablename__ = "purchases"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(100), nullable=False)
    plan_id = Column(String(36), ForeignKey("subscription_plans.id"), nullable=False)
    tokens_added = Column(Integer, nullable=False)
    amount_paid = Column(Numeric(precision=10, scale=2), nullable=False)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e], name="paymentstatus"),
        nullable=False,
    )
    payment_id = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_purchase_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Purchase(id={self.id}, user_id='{self.user_id}', payment_id='{self.payment_id}')>"
