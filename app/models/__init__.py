"""Database Models"""
from app.models.wallet import Wallet
from app.models.transaction import WalletTransaction, TransactionType
from app.models.subscription_plan import SubscriptionPlan
from app.models.purchase import Purchase, PaymentStatus
from app.models.service_cost import ServiceCost

__all__ = [
    "Wallet",
    "WalletTransaction",
    "TransactionType",
    "SubscriptionPlan",
    "Purchase",
    "PaymentStatus",
    "ServiceCost",
]
