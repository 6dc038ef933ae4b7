"""Core ledger operations: atomic credit/debit with idempotency keys.

Balances only ever move through a single conditional UPDATE:

    UPDATE users SET balance = balance + :delta, version = version + 1
    WHERE id = :id [AND balance >= :amount] RETURNING balance

so two concurrent debits can never both pass the sufficiency check. The
matching ledger row is written in the same database transaction.

Every write function takes ``commit``. With ``commit=False`` the caller owns
the transaction (the referral flow uses this to group several writes) and no
activity entry is recorded.
"""

import uuid
from typing import Any, Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.coins_service.errors import (
    CoinsError,
    IdempotencyKeyConflictError,
    InsufficientFundsError,
    InvalidAmountError,
    PersistenceError,
    UserNotFoundError,
)
from services.coins_service.models import (
    ActivityType,
    CoinTransaction,
    IntegrityStatus,
    TransactionStatus,
    TransactionType,
    User,
)
from services.coins_service.services.activity_log import ActivityLogger, RequestContext
from services.coins_service.services.reward_policy import enforce_reward_policy
from sqlalchemy import case, desc, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50


def _validate_amount(amount: Any) -> int:
    # bool is an int subclass; True is not one coin
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(f"Amount must be a positive integer, got {amount!r}")
    return amount


def order_key(kind: str, user_id: uuid.UUID, order_id: str) -> str:
    """Idempotency key for a store order. Order ids are only unique per user."""
    return f"{kind}:{user_id}:{order_id}"


async def get_transaction_by_key(
    db: AsyncSession, idempotency_key: str
) -> Optional[CoinTransaction]:
    result = await db.execute(
        select(CoinTransaction).where(
            CoinTransaction.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Mutation core
# ---------------------------------------------------------------------------


def _check_replay(
    existing: CoinTransaction,
    *,
    user_id: uuid.UUID,
    delta: int,
    transaction_type: TransactionType,
) -> CoinTransaction:
    """A stored key only answers the exact operation it was recorded for."""
    if (
        existing.user_id != user_id
        or existing.transaction_type != transaction_type
        or existing.amount != delta
    ):
        logger.warning(
            "Idempotency key %s reused for a different operation "
            "(user %s, %s %+d)",
            existing.idempotency_key,
            user_id,
            transaction_type.value,
            delta,
        )
        raise IdempotencyKeyConflictError()
    return existing


async def _apply_delta(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    delta: int,
    transaction_type: TransactionType,
    reason: str,
    idempotency_key: Optional[str],
    reference: Optional[str],
    metadata: Optional[dict],
    commit: bool,
    activity_logger: Optional[ActivityLogger],
    context: Optional[RequestContext],
) -> CoinTransaction:
    """Apply a signed delta and append the ledger row.

    1. Idempotency check: return the stored transaction if the key exists
       and was recorded for this same user, type and amount
    2. Reward eligibility (reward-type credits only)
    3. Conditional UPDATE of the balance (guarded for debits)
    4. Insert the transaction with previous/new balance snapshots
    5. Commit (unless the caller owns the transaction)
    6. Record activity, best-effort
    """
    key = idempotency_key or f"{transaction_type.value}:{user_id}:{uuid.uuid4().hex}"

    # 1. Idempotency check
    existing = await get_transaction_by_key(db, key)
    if existing:
        logger.info("Idempotent replay for key=%s -> txn=%s", key, existing.id)
        return _check_replay(
            existing, user_id=user_id, delta=delta, transaction_type=transaction_type
        )

    # 2. Reward eligibility
    if delta > 0:
        try:
            await enforce_reward_policy(db, user_id, transaction_type)
        except CoinsError:
            if commit:
                await db.rollback()
            raise

    try:
        # 3. Conditional update
        stmt = update(User).where(User.id == user_id)
        if delta < 0:
            stmt = stmt.where(User.balance >= -delta)
        stmt = (
            stmt.values(
                balance=User.balance + delta,
                version=User.version + 1,
                updated_at=utc_now(),
            )
            .returning(User.balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = (await db.execute(stmt)).scalar_one_or_none()

        if new_balance is None:
            current = (
                await db.execute(select(User.balance).where(User.id == user_id))
            ).scalar_one_or_none()
            if commit:
                await db.rollback()
            if current is None:
                raise UserNotFoundError(f"User {user_id} not found")
            raise InsufficientFundsError(required=-delta, available=current)

        # 4. Ledger row
        previous_balance = new_balance - delta
        txn = CoinTransaction(
            user_id=user_id,
            idempotency_key=key,
            transaction_type=transaction_type,
            amount=delta,
            status=TransactionStatus.COMPLETED,
            reason=reason,
            reference=reference,
            txn_metadata={
                **(metadata or {}),
                "previous_balance": previous_balance,
                "new_balance": new_balance,
                "reason": reason,
            },
        )
        db.add(txn)

        # 5. Commit
        if commit:
            await db.commit()
            await db.refresh(txn)
        else:
            await db.flush()

    except IntegrityError:
        if not commit:
            raise
        # Lost a race on the idempotency key; the winner's row is the answer
        await db.rollback()
        winner = await get_transaction_by_key(db, key)
        if winner is None:
            logger.exception("Ledger write for user %s failed", user_id)
            raise PersistenceError()
        logger.info("Concurrent replay for key=%s -> txn=%s", key, winner.id)
        return _check_replay(
            winner, user_id=user_id, delta=delta, transaction_type=transaction_type
        )
    except SQLAlchemyError as exc:
        if commit:
            await db.rollback()
        logger.exception("Ledger write for user %s failed", user_id)
        raise PersistenceError() from exc

    logger.info(
        "%s %+d for user %s (key=%s), balance %d->%d",
        transaction_type.value,
        delta,
        user_id,
        key,
        previous_balance,
        new_balance,
    )

    # 6. Activity
    if commit and activity_logger is not None:
        await activity_logger.log(
            user_id,
            ActivityType.COINS_ADDED if delta > 0 else ActivityType.COINS_REMOVED,
            details={
                "amount": abs(delta),
                "reason": reason,
                "transaction_type": transaction_type.value,
                "transaction_id": str(txn.id),
                "new_balance": new_balance,
            },
            context=context,
        )
    return txn


# ---------------------------------------------------------------------------
# Credit / Debit
# ---------------------------------------------------------------------------


async def credit(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: int,
    reason: str,
    transaction_type: TransactionType = TransactionType.REWARD_CREDIT,
    idempotency_key: Optional[str] = None,
    reference: Optional[str] = None,
    metadata: Optional[dict] = None,
    commit: bool = True,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> CoinTransaction:
    """Add ``amount`` coins.

    Reward types (see ``reward_policy.REWARD_TYPES``) require an active,
    unblocked recipient and respect per-type daily caps and cooldowns.
    Refunds and adjustments are not rewards and are always accepted.
    """
    amount = _validate_amount(amount)
    return await _apply_delta(
        db,
        user_id=user_id,
        delta=amount,
        transaction_type=transaction_type,
        reason=reason,
        idempotency_key=idempotency_key,
        reference=reference,
        metadata=metadata,
        commit=commit,
        activity_logger=activity_logger,
        context=context,
    )


async def debit(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: int,
    reason: str,
    transaction_type: TransactionType = TransactionType.REWARD_DEBIT,
    idempotency_key: Optional[str] = None,
    reference: Optional[str] = None,
    metadata: Optional[dict] = None,
    commit: bool = True,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> CoinTransaction:
    """Remove ``amount`` coins; raises InsufficientFundsError rather than go negative."""
    amount = _validate_amount(amount)
    return await _apply_delta(
        db,
        user_id=user_id,
        delta=-amount,
        transaction_type=transaction_type,
        reason=reason,
        idempotency_key=idempotency_key,
        reference=reference,
        metadata=metadata,
        commit=commit,
        activity_logger=activity_logger,
        context=context,
    )


async def adjust(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: int,
    reason: str,
    admin_id: str,
    idempotency_key: Optional[str] = None,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> CoinTransaction:
    """Admin adjustment. Positive amounts credit, negative amounts debit."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
        raise InvalidAmountError("Adjustment amount must be a non-zero integer")

    operation = credit if amount > 0 else debit
    return await operation(
        db,
        user_id=user_id,
        amount=abs(amount),
        reason=reason,
        transaction_type=TransactionType.ADMIN_ADJUSTMENT,
        idempotency_key=idempotency_key,
        metadata={"admin_id": admin_id},
        activity_logger=activity_logger,
        context=context,
    )


async def purchase(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: int,
    order_id: str,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> CoinTransaction:
    """Pay for a store order. One debit per order id."""
    return await debit(
        db,
        user_id=user_id,
        amount=amount,
        reason=f"Store purchase {order_id}",
        transaction_type=TransactionType.PURCHASE_DEBIT,
        idempotency_key=order_key("purchase", user_id, order_id),
        reference=order_id,
        metadata={"order_id": order_id},
        activity_logger=activity_logger,
        context=context,
    )


async def refund(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: int,
    order_id: str,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> CoinTransaction:
    """Refund a store order. One credit per order id."""
    return await credit(
        db,
        user_id=user_id,
        amount=amount,
        reason=f"Store refund {order_id}",
        transaction_type=TransactionType.PURCHASE_REFUND,
        idempotency_key=order_key("refund", user_id, order_id),
        reference=order_id,
        metadata={"order_id": order_id},
        activity_logger=activity_logger,
        context=context,
    )


async def fraud_penalty(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    amount: int,
    reason: str,
    admin_id: str,
    idempotency_key: Optional[str] = None,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> CoinTransaction:
    """Take coins back from a user caught gaming rewards. Cannot overdraw."""
    return await debit(
        db,
        user_id=user_id,
        amount=amount,
        reason=reason,
        transaction_type=TransactionType.FRAUD_PENALTY,
        idempotency_key=idempotency_key,
        metadata={"admin_id": admin_id},
        activity_logger=activity_logger,
        context=context,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_balance(db: AsyncSession, user_id: uuid.UUID) -> int:
    balance = (
        await db.execute(select(User.balance).where(User.id == user_id))
    ).scalar_one_or_none()
    if balance is None:
        raise UserNotFoundError(f"User {user_id} not found")
    return balance


async def get_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    transaction_type: Optional[TransactionType] = None,
) -> tuple[list[CoinTransaction], int]:
    """Newest-first page of a user's transactions plus the total count."""
    await get_balance(db, user_id)
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    base = select(CoinTransaction).where(CoinTransaction.user_id == user_id)
    count_base = (
        select(func.count())
        .select_from(CoinTransaction)
        .where(CoinTransaction.user_id == user_id)
    )
    if transaction_type:
        base = base.where(CoinTransaction.transaction_type == transaction_type)
        count_base = count_base.where(
            CoinTransaction.transaction_type == transaction_type
        )

    total = (await db.execute(count_base)).scalar() or 0
    result = await db.execute(
        base.order_by(desc(CoinTransaction.created_at)).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_transaction_stats(db: AsyncSession, user_id: uuid.UUID) -> dict:
    """Per-type counts and totals, plus lifetime earned and spent."""
    await get_balance(db, user_id)
    result = await db.execute(
        select(
            CoinTransaction.transaction_type,
            func.count(),
            func.coalesce(func.sum(CoinTransaction.amount), 0),
        )
        .where(
            CoinTransaction.user_id == user_id,
            CoinTransaction.status == TransactionStatus.COMPLETED,
        )
        .group_by(CoinTransaction.transaction_type)
    )
    by_type = {
        txn_type.value: {"count": count, "total": total}
        for txn_type, count, total in result.all()
    }

    earned, spent = (
        await db.execute(
            select(
                func.coalesce(
                    func.sum(
                        case((CoinTransaction.amount > 0, CoinTransaction.amount), else_=0)
                    ),
                    0,
                ),
                func.coalesce(
                    func.sum(
                        case((CoinTransaction.amount < 0, -CoinTransaction.amount), else_=0)
                    ),
                    0,
                ),
            ).where(
                CoinTransaction.user_id == user_id,
                CoinTransaction.status == TransactionStatus.COMPLETED,
            )
        )
    ).one()

    return {"by_type": by_type, "total_earned": earned, "total_spent": spent}


async def verify_integrity(db: AsyncSession, user_id: uuid.UUID) -> dict:
    """Check the stored balance against the ledger.

    The balance must equal the sum of completed amounts, and every row must
    satisfy ``new_balance - previous_balance == amount``.
    """
    balance = await get_balance(db, user_id)
    result = await db.execute(
        select(CoinTransaction).where(
            CoinTransaction.user_id == user_id,
            CoinTransaction.status == TransactionStatus.COMPLETED,
        )
    )
    transactions = list(result.scalars().all())

    ledger_sum = sum(txn.amount for txn in transactions)
    bad_rows = [
        str(txn.id)
        for txn in transactions
        if txn.new_balance - txn.previous_balance != txn.amount
    ]
    ok = ledger_sum == balance and not bad_rows
    if not ok:
        logger.warning(
            "Ledger mismatch for user %s: balance=%d ledger_sum=%d bad_rows=%s",
            user_id,
            balance,
            ledger_sum,
            bad_rows,
        )
    return {
        "user_id": user_id,
        "status": IntegrityStatus.OK if ok else IntegrityStatus.MISMATCH,
        "balance": balance,
        "ledger_sum": ledger_sum,
        "transaction_count": len(transactions),
        "inconsistent_transaction_ids": bad_rows,
    }
