"""Purchase Processor - Turns a paid plan into a wallet credit exactly once"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Purchase, PaymentStatus
from app.services.cost_catalog import CostCatalog
from app.services.exceptions import PaymentAlreadyProcessed, PaymentIdRequired
from app.services.wallet_service import WalletService

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    new_balance: int
    purchase_id: str


class PurchaseService:
    """
    Credits plan tokens for a caller-supplied payment id.

    The payment id is trusted as proof of payment; no gateway verification
    happens here. The unique constraint on purchases.payment_id is the
    authoritative replay guard, the read beforehand only gives a fast answer.
    """

    def __init__(
        self,
        db: AsyncSession,
        wallet_service: Optional[WalletService] = None,
        catalog: Optional[CostCatalog] = None,
    ):
        self.db = db
        self.catalog = catalog or CostCatalog(db)
        self.wallets = wallet_service or WalletService(db, catalog=self.catalog)

    async def _payment_exists(self, payment_id: str) -> bool:
        result = await self.db.execute(select(Purchase.id).where(Purchase.payment_id == payment_id))
        return result.scalar_one_or_none() is not None

    async def process_purchase(self, user_id: str, plan_id: str, payment_id: Optional[str]) -> PurchaseResult:
        plan = await self.catalog.get_plan(plan_id)

        if not payment_id or not payment_id.strip():
            raise PaymentIdRequired()

        if await self._payment_exists(payment_id):
            raise PaymentAlreadyProcessed(payment_id)

        purchase_id = str(uuid.uuid4())
        try:
            async with self.wallets.locked_wallet(user_id) as wallet:
                self.db.add(Purchase(
                    id=purchase_id,
                    user_id=user_id,
                    plan_id=plan.id,
                    tokens_added=plan.tokens,
                    amount_paid=plan.price,
                    payment_status=PaymentStatus.COMPLETED,
                    payment_id=payment_id,
                ))
                # Surface a duplicate payment_id before any credit is applied
                await self.db.flush()

                self.wallets.record_credit(
                    wallet,
                    plan.tokens,
                    f"Subscription Purchase: {plan.name}",
                    {
                        "planId": plan.id,
                        "planName": plan.name,
                        "paymentId": payment_id,
                        "purchaseId": purchase_id,
                    },
                )
                new_balance = wallet.balance_tokens
        except IntegrityError as e:
            if await self._payment_exists(payment_id):
                raise PaymentAlreadyProcessed(payment_id) from e
            raise

        logger.info(
            f"Purchase {purchase_id}: user {user_id} bought plan {plan.name} "
            f"(+{plan.tokens} tokens, payment {payment_id}), balance {new_balance}"
        )
        return PurchaseResult(new_balance=new_balance, purchase_id=purchase_id)
