from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, func
from sqlalchemy.exc import IntegrityError
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Optional, List, Tuple, AsyncIterator
import enum
import logging
import uuid

from app.models import Wallet, WalletTransaction, TransactionType
from app.services.cost_catalog import CostCatalog
from app.services.exceptions import IdempotencyKeyConflict, InsufficientTokens, InvalidAmount, InvalidLimit
from app.utils.locks import KeyedLock, wallet_locks
from app.config import settings

logger = logging.getLogger(__name__)

WELCOME_BONUS_REASON = "Welcome Bonus"


class WalletProvisioning(str, enum.Enum):
    """Outcome of ensure_wallet; callers treat both the same way"""
    CREATED = "created"
    ALREADY_EXISTED = "already_existed"


@dataclass
class WalletBalance:
    balance: int
    recent_transactions: List[WalletTransaction] = field(default_factory=list)


@dataclass
class DebitResult:
    new_balance: int
    cost: int
    transaction_id: str
    replayed: bool = False


@dataclass
class CreditResult:
    new_balance: int
    transaction_id: str


@dataclass
class LedgerReconciliation:
    wallet_id: str
    balance: int
    ledger_total: int

    @property
    def consistent(self) -> bool:
        return self.balance == self.ledger_total


class WalletService:
    """Wallet Service - Owns every balance mutation and ledger append

    Each write runs as one unit of work: per-user lock, row lock
    (SELECT FOR UPDATE), read-check-write, ledger append, commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        catalog: Optional[CostCatalog] = None,
        locks: Optional[KeyedLock] = None,
    ):
        self.db = db
        self.catalog = catalog or CostCatalog(db)
        self.locks = locks or wallet_locks

    async def _find_wallet(self, user_id: str, for_update: bool = False) -> Optional[Wallet]:
        stmt = select(Wallet).where(Wallet.user_id == user_id)
        if for_update:
            # populate_existing: the row may already sit in the identity map with a stale balance
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _ensure_wallet(self, user_id: str) -> Tuple[Wallet, WalletProvisioning]:
        """
        Create the wallet with the welcome grant if it does not exist.
        Must be called with the user's lock held.

        The unique constraint on user_id settles races with other processes:
        the loser rolls back and re-reads the winner's row.
        """
        wallet = await self._find_wallet(user_id)
        if wallet:
            return wallet, WalletProvisioning.ALREADY_EXISTED

        welcome = settings.WELCOME_BONUS_TOKENS
        wallet = Wallet(id=str(uuid.uuid4()), user_id=user_id, balance_tokens=welcome)
        self.db.add(wallet)
        if welcome > 0:
            self.db.add(WalletTransaction(
                id=str(uuid.uuid4()),
                wallet_id=wallet.id,
                change_amount=welcome,
                type=TransactionType.CREDIT,
                reason=WELCOME_BONUS_REASON,
                meta_data={
                    "description": "Welcome bonus tokens for new account",
                    "isWelcomeBonus": True,
                },
                balance_after=welcome,
            ))

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            wallet = await self._find_wallet(user_id)
            if wallet is None:
                raise
            logger.info(f"Wallet for user {user_id} created concurrently, using existing row")
            return wallet, WalletProvisioning.ALREADY_EXISTED

        logger.info(f"Created wallet {wallet.id} for user {user_id} with {welcome} welcome tokens")
        return wallet, WalletProvisioning.CREATED

    async def ensure_wallet(self, user_id: str) -> Tuple[Wallet, WalletProvisioning]:
        """Idempotently provision the user's wallet"""
        async with self.locks.acquire(user_id):
            return await self._ensure_wallet(user_id)

    async def get_or_create_wallet(self, user_id: str) -> Wallet:
        wallet, _ = await self.ensure_wallet(user_id)
        return wallet

    @asynccontextmanager
    async def locked_wallet(self, user_id: str) -> AsyncIterator[Wallet]:
        """
        Unit of work over one user's wallet.

        Yields the row-locked wallet; commits when the block exits normally
        and rolls back on any exception. No network I/O belongs inside.
        """
        async with self.locks.acquire(user_id):
            await self._ensure_wallet(user_id)
            try:
                wallet = await self._find_wallet(user_id, for_update=True)
                yield wallet
                await self.db.commit()
            except Exception:
                await self.db.rollback()
                raise

    def _append(
        self,
        wallet: Wallet,
        change_amount: int,
        transaction_type: TransactionType,
        reason: str,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ) -> WalletTransaction:
        """Apply a signed change to a locked wallet and append its ledger entry"""
        new_balance = wallet.balance_tokens + change_amount
        if new_balance < 0:
            raise InsufficientTokens(wallet.balance_tokens, -change_amount)

        wallet.balance_tokens = new_balance
        entry = WalletTransaction(
            id=str(uuid.uuid4()),
            wallet_id=wallet.id,
            change_amount=change_amount,
            type=transaction_type,
            reason=reason,
            meta_data=metadata or None,
            balance_after=new_balance,
            idempotency_key=idempotency_key,
        )
        self.db.add(entry)
        return entry

    def record_credit(
        self,
        wallet: Wallet,
        amount: int,
        reason: str,
        metadata: Optional[dict] = None,
    ) -> WalletTransaction:
        """Credit a wallet already locked by locked_wallet (committed by the caller's unit)"""
        _validate_amount(amount)
        return self._append(wallet, amount, TransactionType.CREDIT, reason, metadata)

    async def get_balance(self, user_id: str) -> WalletBalance:
        """Current balance plus the most recent transactions, newest first"""
        wallet = await self.get_or_create_wallet(user_id)
        transactions = await self._recent_transactions(wallet.id, settings.RECENT_TRANSACTIONS_LIMIT)
        return WalletBalance(balance=wallet.balance_tokens, recent_transactions=transactions)

    async def deduct_tokens(
        self,
        user_id: str,
        service_name: str,
        metadata: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ) -> DebitResult:
        """
        Charge the catalog cost of a service.

        Raises ServiceNotConfigured before touching the wallet and
        InsufficientTokens without writing anything. With an idempotency_key,
        a repeated call for the same service returns the original debit
        instead of charging again; a key first used for another service
        raises IdempotencyKeyConflict.
        """
        cost = await self.catalog.get_cost(service_name)

        async with self.locked_wallet(user_id) as wallet:
            if idempotency_key:
                previous = await self._find_keyed_entry(wallet.id, idempotency_key)
                if previous and (previous.type != TransactionType.DEBIT or previous.reason != service_name):
                    raise IdempotencyKeyConflict(idempotency_key, service_name, previous.reason)
                if previous:
                    logger.info(f"Replayed debit {previous.id} for user {user_id} (key {idempotency_key})")
                    return DebitResult(
                        new_balance=previous.balance_after,
                        cost=-previous.change_amount,
                        transaction_id=previous.id,
                        replayed=True,
                    )

            if wallet.balance_tokens < cost:
                raise InsufficientTokens(wallet.balance_tokens, cost)

            entry = self._append(
                wallet,
                -cost,
                TransactionType.DEBIT,
                service_name,
                metadata,
                idempotency_key=idempotency_key,
            )
            new_balance = wallet.balance_tokens

        logger.info(f"Debited {cost} tokens from user {user_id} for {service_name}, balance {new_balance}")
        return DebitResult(new_balance=new_balance, cost=cost, transaction_id=entry.id)

    async def credit_tokens(
        self,
        user_id: str,
        amount: int,
        reason: str,
        metadata: Optional[dict] = None,
    ) -> CreditResult:
        """Add tokens; a first-time user also receives the welcome grant"""
        _validate_amount(amount)

        async with self.locked_wallet(user_id) as wallet:
            entry = self.record_credit(wallet, amount, reason, metadata)
            new_balance = wallet.balance_tokens

        logger.info(f"Credited {amount} tokens to user {user_id} ({reason}), balance {new_balance}")
        return CreditResult(new_balance=new_balance, transaction_id=entry.id)

    async def get_transaction_history(self, user_id: str, limit: Optional[int] = None) -> List[WalletTransaction]:
        """Full history for a user, newest first"""
        if limit is None:
            limit = settings.DEFAULT_HISTORY_LIMIT
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= settings.MAX_HISTORY_LIMIT:
            raise InvalidLimit(f"limit must be a number between 1 and {settings.MAX_HISTORY_LIMIT}")

        wallet = await self.get_or_create_wallet(user_id)
        return await self._recent_transactions(wallet.id, limit)

    async def reconcile(self, user_id: str) -> LedgerReconciliation:
        """Compare the stored balance with the sum of the ledger"""
        wallet = await self.get_or_create_wallet(user_id)
        result = await self.db.execute(
            select(func.coalesce(func.sum(WalletTransaction.change_amount), 0)).where(
                WalletTransaction.wallet_id == wallet.id
            )
        )
        ledger_total = int(result.scalar() or 0)
        reconciliation = LedgerReconciliation(
            wallet_id=wallet.id,
            balance=wallet.balance_tokens,
            ledger_total=ledger_total,
        )
        if not reconciliation.consistent:
            logger.error(
                f"Ledger mismatch for wallet {wallet.id}: balance {wallet.balance_tokens}, ledger {ledger_total}"
            )
        return reconciliation

    async def _recent_transactions(self, wallet_id: str, limit: int) -> List[WalletTransaction]:
        stmt = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet_id)
            .order_by(WalletTransaction.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _find_keyed_entry(self, wallet_id: str, idempotency_key: str) -> Optional[WalletTransaction]:
        # (wallet_id, idempotency_key) is unique, so at most one row matches
        stmt = select(WalletTransaction).where(
            and_(
                WalletTransaction.wallet_id == wallet_id,
                WalletTransaction.idempotency_key == idempotency_key,
            )
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()


def _validate_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")
