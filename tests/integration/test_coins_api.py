"""Integration tests for coins_service member endpoints."""

import uuid

import pytest
from libs.auth.dependencies import get_current_user
from libs.common.config import get_settings
from services.coins_service.services import ledger_ops
from tests.factories import create_user, make_member_user, make_token, override_auth


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "coins"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_request_id_is_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "req-abc-123"})

    assert response.headers["X-Request-ID"] == "req-abc-123"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_request_id_generated_when_missing(client):
    response = await client.get("/health")

    assert response.headers.get("X-Request-ID")


# ---------------------------------------------------------------------------
# Balance / history
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_my_balance(app, client, db_session):
    """GET /coins/me: current balance for the caller."""
    user = await create_user(db_session, balance=0)
    await ledger_ops.credit(db_session, user_id=user.id, amount=40, reason="Welcome")

    with override_auth(app, make_member_user(user_id=user.id)):
        response = await client.get("/coins/me")

    assert response.status_code == 200, response.text
    assert response.json() == {"user_id": str(user.id), "balance": 40}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_my_balance_unknown_user(app, client):
    with override_auth(app, make_member_user()):
        response = await client.get("/coins/me")

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_non_uuid_subject_has_no_account(app, client):
    with override_auth(app, make_member_user(user_id="not-a-uuid")):
        response = await client.get("/coins/me")

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_my_transactions_paginated(app, client, db_session):
    """GET /coins/transactions: newest first, skip/limit honoured."""
    user = await create_user(db_session)
    for amount in (1, 2, 3):
        await ledger_ops.credit(
            db_session, user_id=user.id, amount=amount, reason=f"Credit {amount}"
        )
    await ledger_ops.debit(db_session, user_id=user.id, amount=1, reason="Spend")

    with override_auth(app, make_member_user(user_id=user.id)):
        page = await client.get("/coins/transactions", params={"skip": 1, "limit": 2})
        credits_only = await client.get(
            "/coins/transactions", params={"transaction_type": "reward_credit"}
        )

    assert page.status_code == 200, page.text
    data = page.json()
    assert data["total"] == 4
    assert (data["skip"], data["limit"]) == (1, 2)
    assert [t["amount"] for t in data["transactions"]] == [3, 2]
    first = data["transactions"][0]
    assert first["new_balance"] - first["previous_balance"] == first["amount"]

    assert credits_only.json()["total"] == 3


@pytest.mark.asyncio
@pytest.mark.integration
async def test_list_transactions_rejects_oversized_page(app, client, db_session):
    user = await create_user(db_session)

    with override_auth(app, make_member_user(user_id=user.id)):
        response = await client.get("/coins/transactions", params={"limit": 1000})

    assert response.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
async def test_my_stats(app, client, db_session):
    user = await create_user(db_session)
    await ledger_ops.credit(db_session, user_id=user.id, amount=30, reason="Quest")
    await ledger_ops.debit(db_session, user_id=user.id, amount=10, reason="Hat")

    with override_auth(app, make_member_user(user_id=user.id)):
        response = await client.get("/coins/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["total_earned"] == 30
    assert data["total_spent"] == 10
    assert data["by_type"]["reward_credit"] == {"count": 1, "total": 30}


# ---------------------------------------------------------------------------
# Store purchases
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_purchase_charges_once_per_order(app, client, db_session):
    """POST /coins/purchase: a retried order id is not charged twice."""
    user = await create_user(db_session)
    await ledger_ops.credit(db_session, user_id=user.id, amount=100, reason="Seed")
    body = {"amount": 60, "order_id": "order-7"}

    with override_auth(app, make_member_user(user_id=user.id)):
        first = await client.post("/coins/purchase", json=body)
        retry = await client.post("/coins/purchase", json=body)
        balance = await client.get("/coins/me")

    assert first.status_code == 200, first.text
    assert first.json()["balance"] == 40
    assert first.json()["transaction"]["transaction_type"] == "purchase_debit"
    assert retry.status_code == 200
    assert retry.json()["transaction"]["id"] == first.json()["transaction"]["id"]
    assert balance.json()["balance"] == 40


@pytest.mark.asyncio
@pytest.mark.integration
async def test_order_ids_are_per_buyer(app, client, db_session):
    """Two buyers using the same order id are each charged for their own order."""
    alice = await create_user(db_session, balance=100)
    bob = await create_user(db_session, balance=100)
    body = {"amount": 30, "order_id": "order-1"}

    with override_auth(app, make_member_user(user_id=alice.id)):
        alice_buy = await client.post("/coins/purchase", json=body)
    with override_auth(app, make_member_user(user_id=bob.id)):
        bob_buy = await client.post("/coins/purchase", json=body)

    assert alice_buy.status_code == 200, alice_buy.text
    assert bob_buy.status_code == 200, bob_buy.text
    bob_txn = bob_buy.json()["transaction"]
    assert bob_txn["id"] != alice_buy.json()["transaction"]["id"]
    assert bob_txn["user_id"] == str(bob.id)
    assert bob_buy.json()["balance"] == 70
    assert await ledger_ops.get_balance(db_session, alice.id) == 70


@pytest.mark.asyncio
@pytest.mark.integration
async def test_purchase_insufficient_funds(app, client, db_session):
    user = await create_user(db_session)
    await ledger_ops.credit(db_session, user_id=user.id, amount=10, reason="Seed")

    with override_auth(app, make_member_user(user_id=user.id)):
        response = await client.post(
            "/coins/purchase", json={"amount": 25, "order_id": "order-8"}
        )

    assert response.status_code == 400
    assert response.json() == {
        "error": "INSUFFICIENT_FUNDS",
        "detail": "Insufficient balance. Required: 25, Available: 10",
    }


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_real_bearer_token(app, client, db_session):
    """Without the auth override the JWT is decoded and verified."""
    user = await create_user(db_session)
    app.dependency_overrides.pop(get_current_user)
    token = make_token(user.id, secret=get_settings().JWT_SECRET)

    response = await client.get(
        "/coins/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 200, response.text
    assert response.json()["user_id"] == str(user.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bad_bearer_token_rejected(app, client):
    app.dependency_overrides.pop(get_current_user)
    token = make_token(uuid.uuid4(), secret="some-other-secret")

    response = await client.get(
        "/coins/me", headers={"Authorization": f"Bearer {token}"}
    )

    assert response.status_code == 401
