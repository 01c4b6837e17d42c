"""Charge gate outcomes and their HTTP mapping"""
import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from app.services.charge_gate import ChargeGate, ChargeOutcome, ChargeStatus, ServiceCharge, raise_for_outcome
from app.services.exceptions import IdempotencyKeyConflict, InsufficientTokens, ServiceNotConfigured
from app.services.wallet_service import DebitResult


class StubWallets:
    """Stands in for WalletService.deduct_tokens"""

    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def deduct_tokens(self, user_id, service_name, metadata=None, idempotency_key=None):
        self.calls.append((user_id, service_name, metadata, idempotency_key))
        if self.error:
            raise self.error
        return self.result


def _gate(wallets) -> ChargeGate:
    return ChargeGate(db=None, wallet_service=wallets)


@pytest.mark.asyncio
async def test_charged():
    wallets = StubWallets(result=DebitResult(new_balance=55, cost=5, transaction_id="t1"))

    outcome = await _gate(wallets).charge_for_service("u1", "text_interview", {"path": "/x"}, idempotency_key="k1")

    assert outcome.charged
    assert outcome.new_balance == 55
    assert outcome.cost == 5
    user_id, service_name, metadata, key = wallets.calls[0]
    assert (user_id, service_name, key) == ("u1", "text_interview", "k1")
    assert metadata["path"] == "/x"
    assert "timestamp" in metadata


@pytest.mark.asyncio
@pytest.mark.parametrize("identity", [None, ""])
async def test_missing_identity_is_unauthorized(identity):
    wallets = StubWallets()

    outcome = await _gate(wallets).charge_for_service(identity, "rag_query")

    assert outcome.status == ChargeStatus.UNAUTHORIZED
    assert wallets.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, expected",
    [
        (InsufficientTokens(3, 10), ChargeStatus.INSUFFICIENT_FUNDS),
        (ServiceNotConfigured("mystery"), ChargeStatus.MISCONFIGURED),
        (OperationalError("SELECT 1", {}, Exception("database is down")), ChargeStatus.TRANSIENT_FAILURE),
        (ConnectionRefusedError("refused"), ChargeStatus.TRANSIENT_FAILURE),
        (IdempotencyKeyConflict("k1", "voice_interview", "ai_chat"), ChargeStatus.DUPLICATE_REQUEST),
    ],
)
async def test_wallet_failures_map_to_outcomes(error, expected):
    outcome = await _gate(StubWallets(error=error)).charge_for_service("u1", "voice_interview")

    assert outcome.status == expected
    assert not outcome.charged
    assert outcome.new_balance is None
    assert outcome.message


@pytest.mark.asyncio
async def test_insufficient_outcome_reports_required_cost():
    outcome = await _gate(StubWallets(error=InsufficientTokens(3, 10))).charge_for_service("u1", "voice_interview")

    assert outcome.cost == 10


@pytest.mark.parametrize(
    "charge_status, status_code",
    [
        (ChargeStatus.UNAUTHORIZED, 401),
        (ChargeStatus.INSUFFICIENT_FUNDS, 402),
        (ChargeStatus.MISCONFIGURED, 503),
        (ChargeStatus.TRANSIENT_FAILURE, 503),
        (ChargeStatus.DUPLICATE_REQUEST, 409),
    ],
)
def test_raise_for_outcome_status_codes(charge_status, status_code):
    outcome = ChargeOutcome(status=charge_status, service_name="rag_query", message="nope")

    with pytest.raises(HTTPException) as exc_info:
        raise_for_outcome(outcome)

    assert exc_info.value.status_code == status_code
    assert exc_info.value.detail["error"] == charge_status.value
    assert exc_info.value.detail["service_name"] == "rag_query"


def test_raise_for_outcome_passes_charged():
    raise_for_outcome(ChargeOutcome(status=ChargeStatus.CHARGED, service_name="ai_chat", new_balance=59, cost=1))


@pytest.mark.asyncio
async def test_service_charge_raises_before_returning():
    charge = ServiceCharge(_gate(StubWallets(error=InsufficientTokens(0, 1))), "ai_chat", "u1")

    with pytest.raises(HTTPException) as exc_info:
        await charge()

    assert exc_info.value.status_code == 402


@pytest.mark.asyncio
async def test_service_charge_against_real_wallet(db, wallet_service):
    charge = ServiceCharge(ChargeGate(db, wallet_service=wallet_service), "video_interview", "gated_user", {"path": "/v"})

    outcome = await charge()

    assert outcome.cost == 15
    assert outcome.new_balance == 45
    assert (await wallet_service.get_balance("gated_user")).balance == 45


@pytest.mark.asyncio
async def test_replayed_debit_is_not_a_charge():
    replay = DebitResult(new_balance=50, cost=10, transaction_id="t1", replayed=True)

    outcome = await _gate(StubWallets(result=replay)).charge_for_service(
        "u1", "voice_interview", idempotency_key="k1"
    )

    assert outcome.status == ChargeStatus.DUPLICATE_REQUEST
    assert not outcome.charged
    assert outcome.new_balance is None


@pytest.mark.asyncio
async def test_service_charge_refuses_repeated_key(db, wallet_service):
    gate = ChargeGate(db, wallet_service=wallet_service)
    first = ServiceCharge(gate, "voice_interview", "repeat_user", idempotency_key="session-1")
    again = ServiceCharge(gate, "voice_interview", "repeat_user", idempotency_key="session-1")

    assert (await first()).new_balance == 50
    with pytest.raises(HTTPException) as exc_info:
        await again()

    assert exc_info.value.status_code == 409
    assert exc_info.value.detail["error"] == "duplicate_request"
    assert (await wallet_service.get_balance("repeat_user")).balance == 50
