"""Member-facing coin endpoints."""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.common.logging import get_logger
from libs.db.session import get_async_db
from services.coins_service.dependencies import (
    get_activity_logger,
    get_current_user_id,
    get_request_context,
)
from services.coins_service.models import TransactionType
from services.coins_service.schemas import (
    BalanceResponse,
    MutationResponse,
    StoreOrderRequest,
    TransactionListResponse,
    TransactionStatsResponse,
)
from services.coins_service.services import ledger_ops
from services.coins_service.services.activity_log import ActivityLogger, RequestContext
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/coins", tags=["coins"])


@router.get("/me", response_model=BalanceResponse)
async def get_my_balance(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """Current coin balance."""
    balance = await ledger_ops.get_balance(db, user_id)
    return BalanceResponse(user_id=user_id, balance=balance)


@router.get("/transactions", response_model=TransactionListResponse)
async def list_my_transactions(
    skip: int = Query(0, ge=0),
    limit: int = Query(ledger_ops.DEFAULT_PAGE_SIZE, ge=1, le=ledger_ops.MAX_PAGE_SIZE),
    transaction_type: Optional[TransactionType] = None,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """My transactions, newest first (paginated, filterable by type)."""
    transactions, total = await ledger_ops.get_history(
        db, user_id, limit=limit, offset=skip, transaction_type=transaction_type
    )
    return TransactionListResponse(
        transactions=transactions, total=total, skip=skip, limit=limit
    )


@router.get("/stats", response_model=TransactionStatsResponse)
async def get_my_stats(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    return await ledger_ops.get_transaction_stats(db, user_id)


@router.post("/purchase", response_model=MutationResponse)
async def purchase_with_coins(
    body: StoreOrderRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Pay for a store order. Retrying the same order id charges once."""
    txn = await ledger_ops.purchase(
        db,
        user_id=user_id,
        amount=body.amount,
        order_id=body.order_id,
        activity_logger=activity_logger,
        context=context,
    )
    return MutationResponse(balance=txn.new_balance, transaction=txn)
