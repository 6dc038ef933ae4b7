"""Transaction request/response schemas."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from services.coins_service.models.enums import (
    IntegrityStatus,
    TransactionStatus,
    TransactionType,
)


class TransactionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    idempotency_key: str
    transaction_type: TransactionType
    amount: int
    status: TransactionStatus
    reason: str
    reference: Optional[str] = None
    previous_balance: int
    new_balance: int
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias="txn_metadata"
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    skip: int
    limit: int


class CoinMutationRequest(BaseModel):
    """Credit or debit body. Amount rules are enforced by the ledger."""

    amount: int
    reason: str = Field(..., min_length=1, max_length=500)
    idempotency_key: Optional[str] = Field(None, max_length=255)


class AdjustBalanceRequest(BaseModel):
    amount: int = Field(..., description="Positive to credit, negative to debit")
    reason: str = Field(..., min_length=5, max_length=500)


class StoreOrderRequest(BaseModel):
    amount: int
    order_id: str = Field(..., min_length=1, max_length=255)


class MutationResponse(BaseModel):
    balance: int
    transaction: TransactionResponse


class TypeTotals(BaseModel):
    count: int
    total: int


class TransactionStatsResponse(BaseModel):
    by_type: dict[str, TypeTotals]
    total_earned: int
    total_spent: int


class IntegrityReportResponse(BaseModel):
    user_id: uuid.UUID
    status: IntegrityStatus
    balance: int
    ledger_sum: int
    transaction_count: int
    inconsistent_transaction_ids: list[str]
