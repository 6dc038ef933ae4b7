"""ReferralRecord model: one row per redeemed referral."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column


class ReferralRecord(Base):
    """A redeemed referral. ``referred_id`` is unique: a user is referred once."""

    __tablename__ = "referral_records"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    referrer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), index=True, nullable=False
    )
    referred_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), unique=True, index=True, nullable=False
    )
    code_used: Mapped[str] = mapped_column(String(20), nullable=False)
    referrer_reward: Mapped[int] = mapped_column(Integer, nullable=False)
    referred_bonus: Mapped[int] = mapped_column(Integer, nullable=False)
    referrer_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True
    )
    referred_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        return f"<ReferralRecord {self.referrer_id} -> {self.referred_id}>"
