from fastapi import APIRouter, Depends, HTTPException, Header, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List
import logging

from app.api.deps import get_current_user_id
from app.config import settings
from app.database import get_db
from app.schemas.wallet import (
    DeductRequest,
    DeductResponse,
    PlanResponse,
    PurchaseRequest,
    PurchaseResponse,
    ReconciliationResponse,
    TransactionResponse,
    WalletBalanceResponse,
)
from app.services.cost_catalog import CostCatalog
from app.services.exceptions import (
    IdempotencyKeyConflict,
    InsufficientTokens,
    InvalidLimit,
    PaymentAlreadyProcessed,
    PaymentIdRequired,
    PlanNotFound,
    ServiceNotConfigured,
)
from app.services.purchase_service import PurchaseService
from app.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wallet", tags=["Wallet"])
plans_router = APIRouter(prefix="/plans", tags=["Plans"])
transactions_router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _unavailable(action: str, exc: Exception) -> HTTPException:
    logger.error(f"{action} failed: {exc}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "error": "Service Unavailable",
            "message": "Service temporarily unavailable. Please try again later.",
        },
    )


@router.get("", response_model=WalletBalanceResponse)
async def get_wallet(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Get current token balance and the 20 most recent transactions

    A first request creates the wallet with the welcome bonus.
    """
    service = WalletService(db)

    try:
        wallet_balance = await service.get_balance(user_id)
    except SQLAlchemyError as e:
        raise _unavailable("Get wallet", e)

    return WalletBalanceResponse(
        balance=wallet_balance.balance,
        recent_transactions=[
            TransactionResponse.from_entry(t) for t in wallet_balance.recent_transactions
        ],
    )


@router.post("/deduct", response_model=DeductResponse)
async def deduct_tokens(
    request: DeductRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Deduct the catalog cost of a service

    Send an **Idempotency-Key** header to make retries safe: a repeated key
    returns the original debit instead of charging again.

    Example:
    ```
    POST /api/v1/wallet/deduct
    Headers: {"Idempotency-Key": "chat_7f3a"}
    Body: {"service_name": "ai_chat"}
    ```
    """
    service = WalletService(db)

    try:
        result = await service.deduct_tokens(
            user_id=user_id,
            service_name=request.service_name,
            metadata=request.metadata,
            idempotency_key=idempotency_key,
        )
    except InsufficientTokens as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "Insufficient Tokens",
                "message": "You do not have enough tokens. Please purchase more tokens or upgrade your plan.",
                "balance": e.balance,
                "required": e.required,
            },
        )
    except IdempotencyKeyConflict as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "Idempotency Key Conflict",
                "message": str(e),
                "idempotency_key": e.idempotency_key,
            },
        )
    except ServiceNotConfigured as e:
        logger.error(f"Deduct requested for unconfigured service: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "Service Not Configured",
                "message": str(e),
                "service_name": request.service_name,
            },
        )
    except SQLAlchemyError as e:
        raise _unavailable("Deduct", e)

    return DeductResponse(
        new_balance=result.new_balance,
        service_name=request.service_name,
        cost=result.cost,
        transaction_id=result.transaction_id,
        replayed=result.replayed,
    )


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase_tokens(
    request: PurchaseRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Purchase a plan and credit its tokens

    The payment_id is accepted as proof of payment and can be used once.

    Example:
    ```
    POST /api/v1/wallet/purchase
    Body: {"plan_id": "<plan uuid>", "payment_id": "pay_abc"}
    ```
    """
    service = PurchaseService(db)

    try:
        result = await service.process_purchase(
            user_id=user_id,
            plan_id=request.plan_id,
            payment_id=request.payment_id,
        )
    except PlanNotFound as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Plan Not Found", "message": str(e), "plan_id": request.plan_id},
        )
    except PaymentIdRequired as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Payment ID Required", "message": str(e)},
        )
    except PaymentAlreadyProcessed as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "Payment Already Processed", "message": str(e), "payment_id": request.payment_id},
        )
    except SQLAlchemyError as e:
        raise _unavailable("Purchase", e)

    return PurchaseResponse(new_balance=result.new_balance, purchase_id=result.purchase_id)


@router.get("/reconcile", response_model=ReconciliationResponse)
async def reconcile_wallet(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Check that the stored balance matches the sum of the ledger"""
    service = WalletService(db)

    try:
        result = await service.reconcile(user_id)
    except SQLAlchemyError as e:
        raise _unavailable("Reconcile", e)

    return ReconciliationResponse(
        wallet_id=result.wallet_id,
        balance=result.balance,
        ledger_total=result.ledger_total,
        consistent=result.consistent,
    )


@plans_router.get("", response_model=List[PlanResponse])
async def get_plans(db: AsyncSession = Depends(get_db)):
    """List purchasable plans, cheapest first (public)"""
    catalog = CostCatalog(db)

    try:
        plans = await catalog.get_all_plans()
    except SQLAlchemyError as e:
        raise _unavailable("Get plans", e)

    return [PlanResponse.from_plan(p) for p in plans]


def _parse_limit(raw: Optional[str]) -> int:
    """Query-string limit; anything that is not an integer is an InvalidLimit"""
    if raw is None:
        return settings.DEFAULT_HISTORY_LIMIT
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidLimit(f"limit must be a number between 1 and {settings.MAX_HISTORY_LIMIT}")


@transactions_router.get("", response_model=List[TransactionResponse])
async def get_transaction_history(
    limit: Optional[str] = Query(None, description="Number of entries, 1 to 1000 (default 100)"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Get transaction history for the authenticated user, newest first

    Example:
    ```
    GET /api/v1/transactions?limit=50
    ```
    """
    service = WalletService(db)

    try:
        transactions = await service.get_transaction_history(user_id, _parse_limit(limit))
    except InvalidLimit as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid Limit", "message": str(e), "limit": limit},
        )
    except SQLAlchemyError as e:
        raise _unavailable("Get transactions", e)

    return [TransactionResponse.from_entry(t) for t in transactions]
