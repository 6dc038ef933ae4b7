"""Eligibility rules for reward credits.

Reward-type credits (earned coins, referral rewards and bonuses) only go to
active, unblocked users, and some types are capped per UTC day or spaced out
by a cooldown. Ledger corrections such as refunds and admin adjustments are
not rewards and skip these checks.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Mapping, Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.coins_service.errors import (
    AccountInactiveError,
    RewardLimitReachedError,
    UserNotFoundError,
)
from services.coins_service.models import CoinTransaction, TransactionType, User
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

REWARD_TYPES = frozenset(
    {
        TransactionType.REWARD_CREDIT,
        TransactionType.REFERRAL_REWARD,
        TransactionType.REFERRAL_BONUS,
    }
)


@dataclass(frozen=True)
class RewardRule:
    max_per_day: Optional[int] = None
    cooldown_minutes: Optional[int] = None


def get_reward_rules() -> dict[TransactionType, RewardRule]:
    settings = get_settings()
    return {
        TransactionType.REFERRAL_REWARD: RewardRule(
            max_per_day=settings.REFERRAL_REWARD_MAX_PER_DAY
        ),
    }


async def _count_since(
    db: AsyncSession,
    user_id: uuid.UUID,
    transaction_type: TransactionType,
    since: datetime,
) -> int:
    return (
        await db.execute(
            select(func.count())
            .select_from(CoinTransaction)
            .where(
                CoinTransaction.user_id == user_id,
                CoinTransaction.transaction_type == transaction_type,
                CoinTransaction.created_at >= since,
            )
        )
    ).scalar() or 0


async def enforce_reward_policy(
    db: AsyncSession,
    user_id: uuid.UUID,
    transaction_type: TransactionType,
    *,
    rules: Optional[Mapping[TransactionType, RewardRule]] = None,
    now: Optional[datetime] = None,
) -> None:
    """Raise if ``user_id`` may not receive a ``transaction_type`` reward now."""
    if transaction_type not in REWARD_TYPES:
        return

    row = (
        await db.execute(
            select(User.is_active, User.is_blocked).where(User.id == user_id)
        )
    ).one_or_none()
    if row is None:
        raise UserNotFoundError(f"User {user_id} not found")
    is_active, is_blocked = row
    if not is_active or is_blocked:
        raise AccountInactiveError()

    rule = (get_reward_rules() if rules is None else rules).get(transaction_type)
    if rule is None:
        return
    now = now or utc_now()

    if rule.cooldown_minutes:
        since = now - timedelta(minutes=rule.cooldown_minutes)
        if await _count_since(db, user_id, transaction_type, since):
            raise RewardLimitReachedError(
                f"{transaction_type.value} is on cooldown for "
                f"{rule.cooldown_minutes} minutes"
            )

    if rule.max_per_day is not None:
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        today = await _count_since(db, user_id, transaction_type, day_start)
        if today >= rule.max_per_day:
            logger.info(
                "Daily %s limit reached for user %s (%d)",
                transaction_type.value,
                user_id,
                rule.max_per_day,
            )
            raise RewardLimitReachedError(
                f"Daily limit of {rule.max_per_day} reached for {transaction_type.value}"
            )
