"""CoinTransaction model: immutable ledger."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from services.coins_service.models.enums import (
    TransactionStatus,
    TransactionType,
    enum_values,
)
from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column


class CoinTransaction(Base):
    """Append-only record of every balance change. Never updated.

    ``amount`` is signed: credits are positive, debits negative.
    ``txn_metadata`` always carries ``previous_balance`` and ``new_balance``.
    """

    __tablename__ = "coin_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    idempotency_key: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="coin_transaction_type_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        nullable=False,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="coin_transaction_status_enum",
            values_callable=enum_values,
            validate_strings=True,
        ),
        default=TransactionStatus.COMPLETED,
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    txn_metadata: Mapped[dict] = mapped_column(
        "txn_metadata", JSON().with_variant(JSONB(), "postgresql"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("amount != 0", name="ck_coin_transaction_amount_non_zero"),
        Index("ix_coin_transactions_user_created", "user_id", "created_at"),
    )

    @property
    def previous_balance(self) -> int:
        return self.txn_metadata["previous_balance"]

    @property
    def new_balance(self) -> int:
        return self.txn_metadata["new_balance"]

    def __repr__(self) -> str:
        return f"<CoinTransaction {self.id} {self.transaction_type.value} {self.amount:+d}>"
