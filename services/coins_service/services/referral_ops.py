"""Referral redemption: one code per user, both parties rewarded together.

The whole redemption runs in a single database transaction: the referral
record, the referred user's ``applied_referrals`` entry, the referrer's
``referral_count`` and both ledger credits commit together or not at all.
The unique ``referral_records.referred_id`` and the deterministic idempotency
keys make a retried or duplicated request unable to pay out twice.
"""

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from libs.common.config import Settings
from libs.common.datetime_utils import utc_isoformat, utc_now
from libs.common.logging import get_logger
from services.coins_service.errors import (
    AlreadyReferredError,
    CoinsError,
    ConcurrentUpdateError,
    InvalidReferralCodeError,
    PersistenceError,
    ReferralNetworkLimitError,
    ReferrerInactiveError,
    SelfReferralForbiddenError,
    UserNotFoundError,
)
from services.coins_service.models import (
    ActivityType,
    CoinTransaction,
    ReferralRecord,
    TransactionType,
    User,
    UserActivityLog,
)
from services.coins_service.services import ledger_ops
from services.coins_service.services.activity_log import ActivityLogger, RequestContext
from sqlalchemy import desc, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReferralPolicy:
    """Reward amounts paid when a referral is redeemed."""

    referrer_reward: int = 100
    referred_bonus: int = 50
    # One apply per client IP per window; 0 disables
    ip_window_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReferralPolicy":
        return cls(
            referrer_reward=settings.REFERRAL_REWARD_AMOUNT,
            referred_bonus=settings.REFERRAL_BONUS_AMOUNT,
            ip_window_hours=settings.REFERRAL_APPLY_IP_WINDOW_HOURS,
        )


@dataclass
class ReferralResult:
    referral: ReferralRecord
    referrer_transaction: CoinTransaction
    referred_transaction: CoinTransaction
    balance: int
    referrer_id: uuid.UUID


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def reward_key(referred_id: uuid.UUID, referrer_id: uuid.UUID) -> str:
    return f"referral-reward:{referred_id}:{referrer_id}"


def bonus_key(referred_id: uuid.UUID, referrer_id: uuid.UUID) -> str:
    return f"referral-bonus:{referred_id}:{referrer_id}"


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = (
        await db.execute(
            select(User)
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


async def _validate(db: AsyncSession, user: User, code: str) -> User:
    """Run the redemption rules and return the referrer."""
    if not code:
        raise InvalidReferralCodeError("Referral code is required")
    if code == user.referral_code:
        raise SelfReferralForbiddenError()
    if user.has_applied_referral:
        raise AlreadyReferredError()

    referrer = (
        await db.execute(
            select(User)
            .where(User.referral_code == code)
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if not referrer:
        raise InvalidReferralCodeError()
    if not referrer.can_receive_rewards:
        raise ReferrerInactiveError()
    return referrer


async def _check_network_window(
    db: AsyncSession, ip: Optional[str], window_hours: int
) -> None:
    """Allow one redemption per client IP within ``window_hours``."""
    if not ip or window_hours <= 0:
        return
    since = utc_now() - timedelta(hours=window_hours)
    recent = (
        await db.execute(
            select(UserActivityLog.id)
            .where(
                UserActivityLog.activity_type == ActivityType.REFERRAL_APPLIED.value,
                UserActivityLog.ip == ip,
                UserActivityLog.created_at >= since,
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    if recent is not None:
        logger.warning("Referral apply from %s refused: window still open", ip)
        raise ReferralNetworkLimitError()


async def apply_referral(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    code: str,
    policy: ReferralPolicy,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> ReferralResult:
    """Redeem ``code`` for ``user_id``.

    1. Validate (self-referral, already referred, unknown or inactive referrer),
       then refuse a second redemption from the same client IP in the window
    2. Insert the referral record
    3. Append to ``applied_referrals`` if the user's version is unchanged
    4. Increment the referrer's ``referral_count``
    5. Credit referrer and referred user under deterministic keys; reward
       limits (referrer daily cap, blocked accounts) refuse the whole redemption
    6. Commit once; roll everything back on any failure
    7. Record activity for both sides, best-effort
    """
    code = normalize_code(code)
    user = await _get_user(db, user_id)
    referrer = await _validate(db, user, code)
    await _check_network_window(
        db, context.ip if context else None, policy.ip_window_hours
    )

    # Plain values: a rollback expires the ORM instances
    referrer_id = referrer.id
    expected_version = user.version
    applied_at = utc_now()

    try:
        # 2. Referral record
        record = ReferralRecord(
            referrer_id=referrer_id,
            referred_id=user_id,
            code_used=code,
            referrer_reward=policy.referrer_reward,
            referred_bonus=policy.referred_bonus,
        )
        db.add(record)
        await db.flush()

        # 3. Optimistic update of the referred user
        entry = {
            "referrer_id": str(referrer_id),
            "code_used": code,
            "applied_at": utc_isoformat(applied_at),
        }
        updated = await db.execute(
            update(User)
            .where(User.id == user_id, User.version == expected_version)
            .values(
                applied_referrals=[entry],
                version=User.version + 1,
                updated_at=applied_at,
            )
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            raise ConcurrentUpdateError()

        # 4. Referrer count
        await db.execute(
            update(User)
            .where(User.id == referrer_id)
            .values(
                referral_count=User.referral_count + 1,
                version=User.version + 1,
                updated_at=applied_at,
            )
            .execution_options(synchronize_session=False)
        )

        # 5. Rewards
        referrer_txn = await ledger_ops.credit(
            db,
            user_id=referrer_id,
            amount=policy.referrer_reward,
            reason="Referral reward",
            transaction_type=TransactionType.REFERRAL_REWARD,
            idempotency_key=reward_key(user_id, referrer_id),
            metadata={"linked_user_id": str(user_id), "code_used": code},
            commit=False,
        )
        referred_txn = await ledger_ops.credit(
            db,
            user_id=user_id,
            amount=policy.referred_bonus,
            reason="Referral bonus",
            transaction_type=TransactionType.REFERRAL_BONUS,
            idempotency_key=bonus_key(user_id, referrer_id),
            metadata={"linked_user_id": str(referrer_id), "code_used": code},
            commit=False,
        )
        record.referrer_transaction_id = referrer_txn.id
        record.referred_transaction_id = referred_txn.id

        # 6. Commit
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.info("Referral for user %s lost a race to another redemption", user_id)
        raise AlreadyReferredError()
    except CoinsError:
        await db.rollback()
        raise
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("Referral for user %s failed", user_id)
        raise PersistenceError() from exc

    logger.info(
        "Referral applied: user %s used code %s of %s (+%d / +%d)",
        user_id,
        code,
        referrer_id,
        policy.referrer_reward,
        policy.referred_bonus,
    )

    # 7. Activity
    if activity_logger is not None:
        await activity_logger.log(
            user_id,
            ActivityType.REFERRAL_APPLIED,
            details={
                "referrer_id": str(referrer_id),
                "code_used": code,
                "bonus": policy.referred_bonus,
            },
            context=context,
        )
        await activity_logger.log(
            referrer_id,
            ActivityType.REFERRAL_CREDITED,
            details={
                "referred_id": str(user_id),
                "reward": policy.referrer_reward,
            },
            context=context,
        )

    return ReferralResult(
        referral=record,
        referrer_transaction=referrer_txn,
        referred_transaction=referred_txn,
        balance=referred_txn.new_balance,
        referrer_id=referrer_id,
    )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_referrals(
    db: AsyncSession,
    referrer_id: uuid.UUID,
    *,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[tuple[ReferralRecord, User]], int]:
    """Users referred by ``referrer_id``, newest first, with the total count."""
    limit = max(1, min(limit, ledger_ops.MAX_PAGE_SIZE))
    offset = max(0, offset)
    total = (
        await db.execute(
            select(func.count())
            .select_from(ReferralRecord)
            .where(ReferralRecord.referrer_id == referrer_id)
        )
    ).scalar() or 0
    result = await db.execute(
        select(ReferralRecord, User)
        .join(User, User.id == ReferralRecord.referred_id)
        .where(ReferralRecord.referrer_id == referrer_id)
        .order_by(desc(ReferralRecord.created_at))
        .offset(offset)
        .limit(limit)
    )
    return [(record, user) for record, user in result.all()], total


async def get_referral_summary(db: AsyncSession, user_id: uuid.UUID) -> dict:
    user = await _get_user(db, user_id)
    total_earned = (
        await db.execute(
            select(func.coalesce(func.sum(CoinTransaction.amount), 0)).where(
                CoinTransaction.user_id == user_id,
                CoinTransaction.transaction_type == TransactionType.REFERRAL_REWARD,
            )
        )
    ).scalar() or 0
    applied = user.applied_referrals[0] if user.applied_referrals else None
    return {
        "referral_code": user.referral_code,
        "referral_count": user.referral_count,
        "total_earned": total_earned,
        "applied_referral": applied,
    }
