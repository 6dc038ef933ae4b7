"""Integration tests for coins_service admin endpoints."""

import uuid

import pytest
from services.coins_service.models import User
from services.coins_service.services import ledger_ops
from sqlalchemy import update
from tests.factories import create_user, make_member_user, override_auth


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_create_user(client):
    """POST /admin/coins/users: new user starts at zero with a code."""
    response = await client.post(
        "/admin/coins/users", json={"name": "Grace", "email": "Grace@Example.com"}
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["balance"] == 0
    assert data["email"] == "grace@example.com"
    assert data["referral_code"].startswith("GRA")
    assert data["applied_referrals"] == []

    fetched = await client.get(f"/admin/coins/users/{data['id']}")
    assert fetched.json()["referral_code"] == data["referral_code"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_create_duplicate_user(client):
    body = {"name": "Grace", "email": "grace@example.com"}
    await client.post("/admin/coins/users", json=body)

    response = await client.post("/admin/coins/users", json=body)

    assert response.status_code == 409
    assert response.json()["error"] == "DUPLICATE_USER"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_get_unknown_user(client):
    response = await client.get(f"/admin/coins/users/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_block_and_unblock(client, db_session):
    user = await create_user(db_session)

    blocked = await client.post(
        f"/admin/coins/users/{user.id}/block", json={"reason": "Bot farming"}
    )
    assert blocked.status_code == 200, blocked.text
    assert blocked.json()["is_blocked"] is True
    assert blocked.json()["block_reason"] == "Bot farming"

    unblocked = await client.post(f"/admin/coins/users/{user.id}/unblock")
    assert unblocked.json()["is_blocked"] is False

    deactivated = await client.post(f"/admin/coins/users/{user.id}/deactivate")
    assert deactivated.json()["is_active"] is False


@pytest.mark.asyncio
@pytest.mark.integration
async def test_member_cannot_use_admin_routes(app, client, db_session):
    user = await create_user(db_session)

    with override_auth(app, make_member_user(user_id=user.id)):
        response = await client.post(
            f"/admin/coins/users/{user.id}/credit",
            json={"amount": 1000, "reason": "Free money"},
        )

    assert response.status_code == 403
    assert await ledger_ops.get_balance(db_session, user.id) == 0


# ---------------------------------------------------------------------------
# Balance changes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_credit_then_debit(client, db_session, admin_user):
    user = await create_user(db_session)

    credit = await client.post(
        f"/admin/coins/users/{user.id}/credit",
        json={"amount": 100, "reason": "Tournament prize"},
    )
    debit = await client.post(
        f"/admin/coins/users/{user.id}/debit",
        json={"amount": 30, "reason": "Correction"},
    )

    assert credit.status_code == 200, credit.text
    assert credit.json()["balance"] == 100
    txn = credit.json()["transaction"]
    assert txn["previous_balance"] == 0
    assert txn["new_balance"] == 100
    assert txn["metadata"]["admin_id"] == admin_user.user_id
    assert debit.json()["balance"] == 70
    assert debit.json()["transaction"]["amount"] == -30


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_credit_idempotency_key(client, db_session):
    user = await create_user(db_session)
    body = {"amount": 25, "reason": "Daily streak", "idempotency_key": "streak-1"}

    first = await client.post(f"/admin/coins/users/{user.id}/credit", json=body)
    second = await client.post(f"/admin/coins/users/{user.id}/credit", json=body)

    assert first.json()["transaction"]["id"] == second.json()["transaction"]["id"]
    assert await ledger_ops.get_balance(db_session, user.id) == 25


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("amount", [0, -10])
async def test_admin_credit_invalid_amount(client, db_session, amount):
    user = await create_user(db_session)

    response = await client.post(
        f"/admin/coins/users/{user.id}/credit",
        json={"amount": amount, "reason": "Oops"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_AMOUNT"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_debit_insufficient_funds(client, db_session):
    user = await create_user(db_session)

    response = await client.post(
        f"/admin/coins/users/{user.id}/debit", json={"amount": 1, "reason": "Fee"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INSUFFICIENT_FUNDS"
    assert await ledger_ops.get_balance(db_session, user.id) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_credit_unknown_user(client):
    response = await client.post(
        f"/admin/coins/users/{uuid.uuid4()}/credit",
        json={"amount": 5, "reason": "Ghost"},
    )

    assert response.status_code == 404
    assert response.json()["error"] == "USER_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_adjust_penalty_and_refund(client, db_session):
    user = await create_user(db_session)
    base = f"/admin/coins/users/{user.id}"

    adjust = await client.post(
        f"{base}/adjust", json={"amount": 80, "reason": "Migrated balance"}
    )
    penalty = await client.post(
        f"{base}/penalty", json={"amount": 20, "reason": "Multi-accounting"}
    )
    refund = await client.post(f"{base}/refund", json={"amount": 15, "order_id": "o-1"})

    assert adjust.json()["transaction"]["transaction_type"] == "admin_adjustment"
    assert penalty.json()["transaction"]["transaction_type"] == "fraud_penalty"
    assert refund.json()["transaction"]["transaction_type"] == "purchase_refund"
    assert refund.json()["balance"] == 75


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_penalty_idempotency_key(client, db_session):
    user = await create_user(db_session, balance=50)
    body = {"amount": 20, "reason": "Multi-accounting", "idempotency_key": "pen-1"}

    first = await client.post(f"/admin/coins/users/{user.id}/penalty", json=body)
    retry = await client.post(f"/admin/coins/users/{user.id}/penalty", json=body)

    assert first.status_code == 200, first.text
    assert retry.json()["transaction"]["id"] == first.json()["transaction"]["id"]
    assert await ledger_ops.get_balance(db_session, user.id) == 30


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_key_reused_for_debit_is_conflict(client, db_session):
    user = await create_user(db_session)
    base = f"/admin/coins/users/{user.id}"

    await client.post(
        f"{base}/credit", json={"amount": 40, "reason": "Prize", "idempotency_key": "k1"}
    )
    response = await client.post(
        f"{base}/debit", json={"amount": 40, "reason": "Fee", "idempotency_key": "k1"}
    )

    assert response.status_code == 409
    assert response.json()["error"] == "IDEMPOTENCY_KEY_CONFLICT"
    assert await ledger_ops.get_balance(db_session, user.id) == 40


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_credit_to_blocked_user(client, db_session):
    user = await create_user(db_session, is_blocked=True)

    response = await client.post(
        f"/admin/coins/users/{user.id}/credit", json={"amount": 10, "reason": "Prize"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "ACCOUNT_INACTIVE"
    assert await ledger_ops.get_balance(db_session, user.id) == 0


# ---------------------------------------------------------------------------
# Audit views
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_user_transactions_and_activity(client, db_session):
    user = await create_user(db_session)
    await client.post(
        f"/admin/coins/users/{user.id}/credit", json={"amount": 5, "reason": "Hi"}
    )

    transactions = await client.get(f"/admin/coins/users/{user.id}/transactions")
    activity = await client.get(f"/admin/coins/users/{user.id}/activity")

    assert transactions.json()["total"] == 1
    entries = activity.json()["entries"]
    assert [e["activity_type"] for e in entries] == ["coins_added"]
    assert entries[0]["ip"] == "127.0.0.1"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_integrity_check(client, db_session):
    user = await create_user(db_session)
    user_id = user.id
    await ledger_ops.credit(db_session, user_id=user_id, amount=10, reason="Seed")

    healthy = await client.get(f"/admin/coins/users/{user_id}/integrity")
    assert healthy.json()["status"] == "ok"
    assert healthy.json()["ledger_sum"] == 10

    await db_session.execute(update(User).where(User.id == user_id).values(balance=999))
    await db_session.commit()

    broken = await client.get(f"/admin/coins/users/{user_id}/integrity")
    assert broken.json()["status"] == "mismatch"
    assert broken.json()["balance"] == 999


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_analytics_is_cached(client, db_session, analytics_clock):
    """GET /admin/coins/analytics: served from cache until the TTL lapses."""
    await create_user(db_session, balance=0)

    first = await client.get("/admin/coins/analytics")
    assert first.status_code == 200, first.text
    assert first.json()["total_users"] == 1
    assert first.json()["cache_age_seconds"] == 0.0

    await create_user(db_session)
    analytics_clock.advance(120)
    cached = await client.get("/admin/coins/analytics")
    assert cached.json()["total_users"] == 1
    assert cached.json()["cache_age_seconds"] == 120.0

    analytics_clock.advance(180)
    expired = await client.get("/admin/coins/analytics")
    assert expired.json()["total_users"] == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_admin_analytics_refresh(client, db_session):
    await client.get("/admin/coins/analytics")
    await create_user(db_session)

    response = await client.get("/admin/coins/analytics", params={"refresh": True})

    assert response.json()["total_users"] == 1
