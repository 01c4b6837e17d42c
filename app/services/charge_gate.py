"""
Charge Gate - Pre-flight token charge for every metered workflow

A gated route declares ``Depends(require_tokens("<service>"))`` and awaits the
resulting charge before doing any work. Any outcome other than CHARGED ends
the request with an error response and the workflow never starts.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_optional_user_id
from app.database import get_db
from app.services.exceptions import IdempotencyKeyConflict, InsufficientTokens, ServiceNotConfigured
from app.services.wallet_service import WalletService

logger = logging.getLogger(__name__)


class ChargeStatus(str, enum.Enum):
    CHARGED = "charged"
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    MISCONFIGURED = "misconfigured"
    TRANSIENT_FAILURE = "transient_failure"
    DUPLICATE_REQUEST = "duplicate_request"


@dataclass
class ChargeOutcome:
    status: ChargeStatus
    service_name: str
    new_balance: Optional[int] = None
    cost: Optional[int] = None
    message: Optional[str] = None

    @property
    def charged(self) -> bool:
        return self.status == ChargeStatus.CHARGED


class ChargeGate:
    """Maps wallet failures 1:1 onto charge outcomes; never grants a free pass"""

    def __init__(self, db: AsyncSession, wallet_service: Optional[WalletService] = None):
        self.wallets = wallet_service or WalletService(db)

    async def charge_for_service(
        self,
        identity: Optional[str],
        service_name: str,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ) -> ChargeOutcome:
        if not identity:
            return ChargeOutcome(
                status=ChargeStatus.UNAUTHORIZED,
                service_name=service_name,
                message="Authentication required. Please include a valid Authorization token.",
            )

        charge_metadata = {"timestamp": datetime.now(timezone.utc).isoformat()}
        charge_metadata.update(metadata or {})

        try:
            result = await self.wallets.deduct_tokens(
                identity,
                service_name,
                charge_metadata,
                idempotency_key=idempotency_key,
            )
        except InsufficientTokens as e:
            return ChargeOutcome(
                status=ChargeStatus.INSUFFICIENT_FUNDS,
                service_name=service_name,
                cost=e.required,
                message="You do not have enough tokens. Please purchase more tokens or upgrade your plan.",
            )
        except IdempotencyKeyConflict as e:
            logger.warning(f"[Wallet] {e}")
            return ChargeOutcome(
                status=ChargeStatus.DUPLICATE_REQUEST,
                service_name=service_name,
                message="This Idempotency-Key was already used for a different service.",
            )
        except ServiceNotConfigured as e:
            logger.error(f"[Wallet] Configuration error: {e}")
            return ChargeOutcome(
                status=ChargeStatus.MISCONFIGURED,
                service_name=service_name,
                message="Service configuration error. Please contact support.",
            )
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"[Wallet] Store error while charging {service_name}: {e}", exc_info=True)
            return ChargeOutcome(
                status=ChargeStatus.TRANSIENT_FAILURE,
                service_name=service_name,
                message="Service temporarily unavailable. Please try again later.",
            )

        if result.replayed:
            # The earlier charge paid for the earlier run only
            logger.info(f"[Wallet] Refused replayed charge for {service_name} by {identity} (key {idempotency_key})")
            return ChargeOutcome(
                status=ChargeStatus.DUPLICATE_REQUEST,
                service_name=service_name,
                cost=result.cost,
                message="This request was already processed. Use a new Idempotency-Key to run it again.",
            )

        return ChargeOutcome(
            status=ChargeStatus.CHARGED,
            service_name=service_name,
            new_balance=result.new_balance,
            cost=result.cost,
        )


_OUTCOME_STATUS_CODES = {
    ChargeStatus.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ChargeStatus.INSUFFICIENT_FUNDS: status.HTTP_402_PAYMENT_REQUIRED,
    ChargeStatus.MISCONFIGURED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ChargeStatus.TRANSIENT_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ChargeStatus.DUPLICATE_REQUEST: status.HTTP_409_CONFLICT,
}


def raise_for_outcome(outcome: ChargeOutcome) -> None:
    """Terminate the request unless the charge went through"""
    if outcome.charged:
        return
    raise HTTPException(
        status_code=_OUTCOME_STATUS_CODES[outcome.status],
        detail={
            "error": outcome.status.value,
            "message": outcome.message,
            "service_name": outcome.service_name,
        },
    )


class ServiceCharge:
    """
    Charge bound to the current request.

    Route handlers call ``await charge()`` as their first statement, after
    FastAPI has validated the request body, so a malformed request is never
    billed.
    """

    def __init__(
        self,
        gate: ChargeGate,
        service_name: str,
        identity: Optional[str],
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ):
        self.gate = gate
        self.service_name = service_name
        self.identity = identity
        self.metadata = metadata
        self.idempotency_key = idempotency_key

    async def __call__(self) -> ChargeOutcome:
        outcome = await self.gate.charge_for_service(
            self.identity,
            self.service_name,
            self.metadata,
            idempotency_key=self.idempotency_key,
        )
        raise_for_outcome(outcome)
        logger.info(f"Charged {outcome.cost} tokens to {self.identity} for {self.service_name}")
        return outcome


def require_tokens(service_name: str) -> Callable:
    """
    Return a FastAPI dependency providing a ServiceCharge for ``service_name``.

    Usage:
        @router.post("/interview/create")
        async def create(request: Body, charge: ServiceCharge = Depends(require_tokens("text_interview"))):
            outcome = await charge()
            ...
    """

    async def _dependency(
        request: Request,
        user_id: Optional[str] = Depends(get_optional_user_id),
        idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
        db: AsyncSession = Depends(get_db),
    ) -> ServiceCharge:
        return ServiceCharge(
            ChargeGate(db),
            service_name,
            user_id,
            {
                "service": service_name,
                "userAgent": request.headers.get("user-agent"),
                "path": request.url.path,
            },
            idempotency_key=idempotency_key,
        )

    return _dependency
