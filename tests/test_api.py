"""HTTP surface: wallet, plans, transactions and the token-gated AI routes"""
import json

import pytest

from conftest import auth, remove_service_cost, set_service_cost

pytestmark = pytest.mark.asyncio

INTERVIEW_BODY = {
    "job_role": "Backend Engineer",
    "experience_level": "mid",
    "interview_type": "technical",
}


async def _balance(client, user_id) -> int:
    response = await client.get("/api/v1/wallet", headers=auth(user_id))
    assert response.status_code == 200
    return response.json()["balance"]


async def _plan_id(client, name) -> str:
    response = await client.get("/api/v1/plans")
    return next(p["plan_id"] for p in response.json() if p["name"] == name)


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_wallet_requires_authentication(client):
    response = await client.get("/api/v1/wallet")

    assert response.status_code == 401
    assert response.json()["detail"]["error"] == "Unauthorized"


async def test_first_wallet_request_grants_welcome_bonus(client):
    response = await client.get("/api/v1/wallet", headers=auth("api_new"))

    assert response.status_code == 200
    body = response.json()
    assert body["balance"] == 60
    assert len(body["recent_transactions"]) == 1
    assert body["recent_transactions"][0]["reason"] == "Welcome Bonus"
    assert body["recent_transactions"][0]["type"] == "credit"


async def test_deduct(client):
    response = await client.post(
        "/api/v1/wallet/deduct",
        json={"service_name": "text_interview", "metadata": {"session": "s1"}},
        headers=auth("api_deduct"),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["new_balance"] == 55
    assert body["cost"] == 5
    assert body["replayed"] is False


async def test_deduct_insufficient_tokens(client, session_factory):
    await set_service_cost(session_factory, "premium_review", 100)

    response = await client.post(
        "/api/v1/wallet/deduct",
        json={"service_name": "premium_review"},
        headers=auth("api_poor"),
    )

    assert response.status_code == 402
    detail = response.json()["detail"]
    assert detail["balance"] == 60
    assert detail["required"] == 100
    assert await _balance(client, "api_poor") == 60


async def test_deduct_unconfigured_service(client):
    response = await client.post(
        "/api/v1/wallet/deduct",
        json={"service_name": "unknown_service"},
        headers=auth("api_unknown"),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Service Not Configured"


async def test_deduct_rejects_blank_service_name(client):
    response = await client.post(
        "/api/v1/wallet/deduct",
        json={"service_name": "   "},
        headers=auth("api_blank"),
    )

    assert response.status_code == 422
    assert response.json()["error"] == "Validation Error"


async def test_deduct_with_idempotency_key_charges_once(client):
    headers = {**auth("api_retry"), "Idempotency-Key": "chat_7f3a"}

    first = await client.post("/api/v1/wallet/deduct", json={"service_name": "ai_chat"}, headers=headers)
    second = await client.post("/api/v1/wallet/deduct", json={"service_name": "ai_chat"}, headers=headers)

    assert first.json()["new_balance"] == 59
    assert second.status_code == 200
    assert second.json()["replayed"] is True
    assert second.json()["transaction_id"] == first.json()["transaction_id"]
    assert await _balance(client, "api_retry") == 59


async def test_deduct_key_reused_for_another_service(client):
    await client.post(
        "/api/v1/wallet/deduct",
        json={"service_name": "ai_chat"},
        headers={**auth("api_keyswap"), "Idempotency-Key": "k-swap"},
    )

    response = await client.post(
        "/api/v1/wallet/deduct",
        json={"service_name": "video_interview"},
        headers={**auth("api_keyswap"), "Idempotency-Key": "k-swap"},
    )

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "Idempotency Key Conflict"
    assert await _balance(client, "api_keyswap") == 59


async def test_plans_are_public_and_cheapest_first(client):
    response = await client.get("/api/v1/plans")

    assert response.status_code == 200
    plans = response.json()
    assert [p["name"] for p in plans] == ["Starter", "Pro Monthly", "Ultra"]
    assert plans[1]["tokens"] == 500
    assert plans[1]["is_recurring"] is True


async def test_purchase_and_duplicate_payment(client):
    plan_id = await _plan_id(client, "Pro Monthly")
    body = {"plan_id": plan_id, "payment_id": "pay_api_1"}

    first = await client.post("/api/v1/wallet/purchase", json=body, headers=auth("api_buyer"))
    second = await client.post("/api/v1/wallet/purchase", json=body, headers=auth("api_buyer"))

    assert first.status_code == 200
    assert first.json()["new_balance"] == 560
    assert second.status_code == 409
    assert second.json()["detail"]["payment_id"] == "pay_api_1"
    assert await _balance(client, "api_buyer") == 560


async def test_purchase_unknown_plan(client):
    response = await client.post(
        "/api/v1/wallet/purchase",
        json={"plan_id": "missing", "payment_id": "pay_api_2"},
        headers=auth("api_buyer"),
    )

    assert response.status_code == 404


async def test_purchase_without_payment_id(client):
    plan_id = await _plan_id(client, "Starter")

    response = await client.post(
        "/api/v1/wallet/purchase",
        json={"plan_id": plan_id, "payment_id": ""},
        headers=auth("api_buyer"),
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Payment ID Required"


async def test_transactions_limit(client):
    for _ in range(3):
        await client.post("/api/v1/wallet/deduct", json={"service_name": "ai_chat"}, headers=auth("api_hist"))

    response = await client.get("/api/v1/transactions", params={"limit": 2}, headers=auth("api_hist"))

    assert response.status_code == 200
    assert [t["change_amount"] for t in response.json()] == [-1, -1]


@pytest.mark.parametrize("limit", ["0", "5000", "abc", "2.5"])
async def test_transactions_rejects_bad_limit(client, limit):
    response = await client.get("/api/v1/transactions", params={"limit": limit}, headers=auth("api_hist"))

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Invalid Limit"


async def test_reconcile(client):
    await client.post("/api/v1/wallet/deduct", json={"service_name": "group_practice"}, headers=auth("api_rec"))

    response = await client.get("/api/v1/wallet/reconcile", headers=auth("api_rec"))

    assert response.status_code == 200
    body = response.json()
    assert body["balance"] == 57
    assert body["ledger_total"] == 57
    assert body["consistent"] is True


async def test_create_interview_charges_and_forwards(client, fake_ai):
    response = await client.post("/api/v1/interview/create", json=INTERVIEW_BODY, headers=auth("api_gated"))

    assert response.status_code == 201
    body = response.json()
    assert body["tokens_charged"] == 5
    assert body["balance"] == 55
    assert body["data"]["session_id"] == "sess_123"

    assert len(fake_ai.calls) == 1
    forwarded = json.loads(fake_ai.calls[0].content)
    assert fake_ai.calls[0].url.path == "/interview/create"
    assert forwarded["user_id"] == "api_gated"
    assert forwarded["job_role"] == "Backend Engineer"


async def test_gated_route_requires_authentication(client, fake_ai):
    response = await client.post("/api/v1/interview/create", json=INTERVIEW_BODY)

    assert response.status_code == 401
    assert fake_ai.calls == []


async def test_invalid_body_is_not_charged(client, fake_ai):
    response = await client.post(
        "/api/v1/interview/create",
        json={"job_role": "Backend Engineer"},
        headers=auth("api_invalid"),
    )

    assert response.status_code == 422
    assert fake_ai.calls == []
    assert await _balance(client, "api_invalid") == 60


async def test_insufficient_tokens_blocks_workflow(client, fake_ai, session_factory):
    await set_service_cost(session_factory, "burn", 58)
    await client.post("/api/v1/wallet/deduct", json={"service_name": "burn"}, headers=auth("api_broke"))

    response = await client.post(
        "/api/v1/voice-interview/create",
        json=INTERVIEW_BODY,
        headers=auth("api_broke"),
    )

    assert response.status_code == 402
    assert response.json()["detail"]["error"] == "insufficient_funds"
    assert fake_ai.calls == []
    assert await _balance(client, "api_broke") == 2


async def test_unpriced_service_blocks_workflow(client, fake_ai, session_factory):
    await remove_service_cost(session_factory, "rag_query")

    response = await client.post("/api/v1/rag", json={"message": "What is a B-tree?"}, headers=auth("api_rag"))

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "misconfigured"
    assert fake_ai.calls == []


async def test_rag_query_forwards_message(client, fake_ai):
    fake_ai.status_code = 200
    fake_ai.body = {"answer": "A balanced tree"}

    response = await client.post("/api/v1/rag", json={"message": "What is a B-tree?"}, headers=auth("api_rag_ok"))

    assert response.status_code == 200
    assert response.json()["data"] == {"answer": "A balanced tree"}
    assert response.json()["balance"] == 59
    assert json.loads(fake_ai.calls[0].content) == {"message": "What is a B-tree?", "user_id": "api_rag_ok"}


async def test_downstream_failure_after_charge(client, fake_ai):
    fake_ai.status_code = 500
    fake_ai.body = {"detail": "model crashed"}

    response = await client.post("/api/v1/interview/create", json=INTERVIEW_BODY, headers=auth("api_down"))

    assert response.status_code == 502
    assert "model crashed" in response.json()["detail"]["message"]
    assert await _balance(client, "api_down") == 55


async def test_gated_route_replay_does_not_rerun_workflow(client, fake_ai):
    headers = {**auth("api_voice_retry"), "Idempotency-Key": "voice-1"}

    statuses = []
    for _ in range(3):
        response = await client.post("/api/v1/voice-interview/create", json=INTERVIEW_BODY, headers=headers)
        statuses.append(response.status_code)

    assert statuses == [201, 409, 409]
    assert len(fake_ai.calls) == 1
    assert await _balance(client, "api_voice_retry") == 50


async def test_cheap_debit_key_cannot_unlock_expensive_workflow(client, fake_ai):
    headers = {**auth("api_cheap_key"), "Idempotency-Key": "cheap"}
    await client.post("/api/v1/wallet/deduct", json={"service_name": "ai_chat"}, headers=headers)

    response = await client.post("/api/v1/voice-interview/create", json=INTERVIEW_BODY, headers=headers)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "duplicate_request"
    assert fake_ai.calls == []
    assert await _balance(client, "api_cheap_key") == 59
