"""Admin coin management endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.logging import get_logger
from libs.common.ttl_cache import TTLCache
from libs.db.session import get_async_db
from services.coins_service.dependencies import (
    get_activity_logger,
    get_analytics_cache,
    get_request_context,
)
from services.coins_service.models import TransactionType
from services.coins_service.schemas import (
    ActivityLogListResponse,
    AdjustBalanceRequest,
    BlockUserRequest,
    CoinAnalyticsResponse,
    CoinMutationRequest,
    IntegrityReportResponse,
    MutationResponse,
    StoreOrderRequest,
    TransactionListResponse,
    UserCreateRequest,
    UserResponse,
)
from services.coins_service.services import ledger_ops, user_ops
from services.coins_service.services.activity_log import (
    ActivityLogger,
    RequestContext,
    list_activity,
)
from services.coins_service.services.analytics_service import (
    ANALYTICS_CACHE_KEY,
    build_coin_summary,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/admin/coins", tags=["admin-coins"])


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreateRequest,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Register a user and issue their referral code."""
    return await user_ops.create_user(
        db,
        name=body.name,
        email=body.email,
        user_id=body.user_id,
        activity_logger=activity_logger,
        context=context,
    )


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    return await user_ops.get_user(db, user_id)


@router.post("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    user_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    return await user_ops.deactivate_user(
        db, user_id, activity_logger=activity_logger, context=context
    )


@router.post("/users/{user_id}/block", response_model=UserResponse)
async def block_user(
    user_id: uuid.UUID,
    body: BlockUserRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    user = await user_ops.block_user(
        db,
        user_id,
        reason=body.reason,
        activity_logger=activity_logger,
        context=context,
    )
    logger.info("Admin %s blocked user %s: %s", admin.user_id, user_id, body.reason)
    return user


@router.post("/users/{user_id}/unblock", response_model=UserResponse)
async def unblock_user(
    user_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    return await user_ops.unblock_user(
        db, user_id, activity_logger=activity_logger, context=context
    )


# ---------------------------------------------------------------------------
# Balance changes
# ---------------------------------------------------------------------------


@router.post("/users/{user_id}/credit", response_model=MutationResponse)
async def credit_user(
    user_id: uuid.UUID,
    body: CoinMutationRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Reward a user with coins."""
    txn = await ledger_ops.credit(
        db,
        user_id=user_id,
        amount=body.amount,
        reason=body.reason,
        idempotency_key=body.idempotency_key,
        metadata={"admin_id": admin.user_id},
        activity_logger=activity_logger,
        context=context,
    )
    return MutationResponse(balance=txn.new_balance, transaction=txn)


@router.post("/users/{user_id}/debit", response_model=MutationResponse)
async def debit_user(
    user_id: uuid.UUID,
    body: CoinMutationRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Take coins from a user. Fails rather than going below zero."""
    txn = await ledger_ops.debit(
        db,
        user_id=user_id,
        amount=body.amount,
        reason=body.reason,
        idempotency_key=body.idempotency_key,
        metadata={"admin_id": admin.user_id},
        activity_logger=activity_logger,
        context=context,
    )
    return MutationResponse(balance=txn.new_balance, transaction=txn)


@router.post("/users/{user_id}/adjust", response_model=MutationResponse)
async def adjust_balance(
    user_id: uuid.UUID,
    body: AdjustBalanceRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Manual coin credit/debit adjustment."""
    txn = await ledger_ops.adjust(
        db,
        user_id=user_id,
        amount=body.amount,
        reason=body.reason,
        admin_id=admin.user_id,
        activity_logger=activity_logger,
        context=context,
    )
    logger.info(
        "Admin %s adjusted user %s by %d: %s",
        admin.user_id,
        user_id,
        body.amount,
        body.reason,
    )
    return MutationResponse(balance=txn.new_balance, transaction=txn)


@router.post("/users/{user_id}/penalty", response_model=MutationResponse)
async def apply_fraud_penalty(
    user_id: uuid.UUID,
    body: CoinMutationRequest,
    admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    txn = await ledger_ops.fraud_penalty(
        db,
        user_id=user_id,
        amount=body.amount,
        reason=body.reason,
        admin_id=admin.user_id,
        idempotency_key=body.idempotency_key,
        activity_logger=activity_logger,
        context=context,
    )
    return MutationResponse(balance=txn.new_balance, transaction=txn)


@router.post("/users/{user_id}/refund", response_model=MutationResponse)
async def refund_order(
    user_id: uuid.UUID,
    body: StoreOrderRequest,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Refund a store order. Retrying the same order id refunds once."""
    txn = await ledger_ops.refund(
        db,
        user_id=user_id,
        amount=body.amount,
        order_id=body.order_id,
        activity_logger=activity_logger,
        context=context,
    )
    return MutationResponse(balance=txn.new_balance, transaction=txn)


# ---------------------------------------------------------------------------
# Ledger / audit views
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/transactions", response_model=TransactionListResponse)
async def list_user_transactions(
    user_id: uuid.UUID,
    skip: int = Query(0, ge=0),
    limit: int = Query(ledger_ops.DEFAULT_PAGE_SIZE, ge=1, le=ledger_ops.MAX_PAGE_SIZE),
    transaction_type: Optional[TransactionType] = None,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    transactions, total = await ledger_ops.get_history(
        db, user_id, limit=limit, offset=skip, transaction_type=transaction_type
    )
    return TransactionListResponse(
        transactions=transactions, total=total, skip=skip, limit=limit
    )


@router.get("/users/{user_id}/activity", response_model=ActivityLogListResponse)
async def list_user_activity(
    user_id: uuid.UUID,
    limit: int = Query(50, ge=1, le=200),
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    entries = await list_activity(db, user_id, limit=limit)
    return ActivityLogListResponse(entries=entries, limit=limit)


@router.get("/users/{user_id}/integrity", response_model=IntegrityReportResponse)
async def verify_user_ledger(
    user_id: uuid.UUID,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
):
    """Compare the stored balance with the sum of the ledger."""
    return await ledger_ops.verify_integrity(db, user_id)


@router.get("/analytics", response_model=CoinAnalyticsResponse)
async def get_analytics(
    refresh: bool = False,
    _admin: AuthUser = Depends(require_admin),
    db: AsyncSession = Depends(get_async_db),
    cache: TTLCache = Depends(get_analytics_cache),
):
    """Coin economy summary, cached for ANALYTICS_CACHE_TTL_SECONDS."""
    if refresh:
        cache.invalidate(ANALYTICS_CACHE_KEY)
    summary = await cache.get_or_set(
        ANALYTICS_CACHE_KEY, lambda: build_coin_summary(db)
    )
    return CoinAnalyticsResponse(
        **summary, cache_age_seconds=cache.age(ANALYTICS_CACHE_KEY) or 0.0
    )
