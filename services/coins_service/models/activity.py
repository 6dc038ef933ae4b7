"""UserActivityLog model: observational audit trail."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import JSON, DateTime, Index, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column


class UserActivityLog(Base):
    """Free-form activity entry.

    Mostly for display. The only rule that reads it is the one-referral-per-
    network window, which looks up recent ``referral_applied`` entries by IP.
    """

    __tablename__ = "user_activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # No FK: entries are written outside the business transaction
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    activity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    details: Mapped[dict] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), default=dict, nullable=False
    )
    ip: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_user_activity_logs_user_created", "user_id", "created_at"),
        Index(
            "ix_user_activity_logs_type_ip_created", "activity_type", "ip", "created_at"
        ),
    )

    def __repr__(self) -> str:
        return f"<UserActivityLog {self.user_id} {self.activity_type}>"
