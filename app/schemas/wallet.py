"""Wallet Schemas - Request/Response Models"""
from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from datetime import datetime
from typing import Optional, List, Any, Dict


class DeductRequest(BaseModel):
    """Request schema for charging a service"""
    service_name: str = Field(..., min_length=1, max_length=100, description="Catalog service name (e.g., text_interview)")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Service-specific context stored on the ledger entry")

    @field_validator('service_name')
    @classmethod
    def strip_service_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('service_name is required and must be a string')
        return v


class PurchaseRequest(BaseModel):
    """Request schema for buying a plan"""
    plan_id: str = Field(..., min_length=1, description="Subscription plan identifier")
    payment_id: Optional[str] = Field(None, max_length=255, description="Payment gateway reference")


class TransactionResponse(BaseModel):
    """Response schema for a ledger entry"""
    transaction_id: str
    change_amount: int
    type: str
    reason: str
    metadata: Optional[Dict[str, Any]] = None
    balance_after: int
    created_at: datetime

    @classmethod
    def from_entry(cls, entry) -> "TransactionResponse":
        return cls(
            transaction_id=entry.id,
            change_amount=entry.change_amount,
            type=entry.type.value,
            reason=entry.reason,
            metadata=entry.meta_data,
            balance_after=entry.balance_after,
            created_at=entry.created_at,
        )


class WalletBalanceResponse(BaseModel):
    """Response schema for wallet balance"""
    balance: int
    recent_transactions: List[TransactionResponse]


class DeductResponse(BaseModel):
    new_balance: int
    service_name: str
    cost: int
    transaction_id: str
    replayed: bool = False


class PurchaseResponse(BaseModel):
    new_balance: int
    purchase_id: str


class PlanResponse(BaseModel):
    """Response schema for a subscription plan"""
    plan_id: str
    name: str
    tokens: int
    price: Decimal
    duration_days: int
    is_recurring: bool

    @classmethod
    def from_plan(cls, plan) -> "PlanResponse":
        return cls(
            plan_id=plan.id,
            name=plan.name,
            tokens=plan.tokens,
            price=plan.price,
            duration_days=plan.duration_days,
            is_recurring=plan.is_recurring,
        )


class ReconciliationResponse(BaseModel):
    wallet_id: str
    balance: int
    ledger_total: int
    consistent: bool
