"""Timezone-aware UTC timestamps for models and ledger rows.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime. Never use datetime.utcnow()."""
    return datetime.now(timezone.utc)


def utc_isoformat(value: datetime) -> str:
    """ISO-8601 string for JSON columns. Naive values are taken to be UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()
