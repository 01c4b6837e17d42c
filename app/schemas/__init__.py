"""Pydantic Schemas for Request/Response Validation"""
from app.schemas.wallet import (
    DeductRequest,
    PurchaseRequest,
    TransactionResponse,
    WalletBalanceResponse,
    DeductResponse,
    PurchaseResponse,
    PlanResponse,
    ReconciliationResponse,
)
from app.schemas.interview import (
    CreateInterviewRequest,
    CreateVoiceInterviewRequest,
    RAGRequest,
)
from app.schemas.room import (
    JoinRoomRequest,
    RoomCreatedResponse,
    RoomJoinedResponse,
)

__all__ = [
    "DeductRequest",
    "PurchaseRequest",
    "TransactionResponse",
    "WalletBalanceResponse",
    "DeductResponse",
    "PurchaseResponse",
    "PlanResponse",
    "ReconciliationResponse",
    "CreateInterviewRequest",
    "CreateVoiceInterviewRequest",
    "RAGRequest",
    "JoinRoomRequest",
    "RoomCreatedResponse",
    "RoomJoinedResponse",
]
