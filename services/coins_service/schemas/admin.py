"""Admin-specific schemas."""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from services.coins_service.schemas.transaction import TypeTotals


class ActivityLogEntry(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    activity_type: str
    details: dict[str, Any]
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityLogListResponse(BaseModel):
    entries: list[ActivityLogEntry]
    limit: int


class CoinAnalyticsResponse(BaseModel):
    total_users: int
    active_users: int
    blocked_users: int
    coins_in_circulation: int
    transactions_by_type: dict[str, TypeTotals]
    total_referrals: int
    last_updated: datetime
    cache_age_seconds: float
