"""Coin economy summary for the admin dashboard."""

from libs.common.datetime_utils import utc_now
from services.coins_service.models import (
    CoinTransaction,
    ReferralRecord,
    TransactionStatus,
    User,
)
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

ANALYTICS_CACHE_KEY = "coin-economy-summary"


async def build_coin_summary(db: AsyncSession) -> dict:
    """Aggregate user, balance, ledger and referral totals."""
    total_users = (
        await db.execute(select(func.count()).select_from(User))
    ).scalar() or 0
    active_users = (
        await db.execute(
            select(func.count())
            .select_from(User)
            .where(User.is_active.is_(True), User.is_blocked.is_(False))
        )
    ).scalar() or 0
    blocked_users = (
        await db.execute(
            select(func.count()).select_from(User).where(User.is_blocked.is_(True))
        )
    ).scalar() or 0
    coins_in_circulation = (
        await db.execute(select(func.coalesce(func.sum(User.balance), 0)))
    ).scalar() or 0

    rows = await db.execute(
        select(
            CoinTransaction.transaction_type,
            func.count(),
            func.coalesce(func.sum(CoinTransaction.amount), 0),
        )
        .where(CoinTransaction.status == TransactionStatus.COMPLETED)
        .group_by(CoinTransaction.transaction_type)
    )
    by_type = {
        txn_type.value: {"count": count, "total": total}
        for txn_type, count, total in rows.all()
    }

    total_referrals = (
        await db.execute(select(func.count()).select_from(ReferralRecord))
    ).scalar() or 0

    return {
        "total_users": total_users,
        "active_users": active_users,
        "blocked_users": blocked_users,
        "coins_in_circulation": coins_in_circulation,
        "transactions_by_type": by_type,
        "total_referrals": total_referrals,
        "last_updated": utc_now(),
    }
