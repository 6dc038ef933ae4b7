"""User request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    user_id: Optional[uuid.UUID] = Field(
        None, description="Reuse the identity provider's subject id"
    )


class AppliedReferral(BaseModel):
    referrer_id: str
    code_used: str
    applied_at: datetime


class UserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    balance: int
    referral_code: str
    applied_referrals: list[AppliedReferral]
    referral_count: int
    is_active: bool
    is_blocked: bool
    block_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BalanceResponse(BaseModel):
    user_id: uuid.UUID
    balance: int


class BlockUserRequest(BaseModel):
    reason: str = Field(..., min_length=3)
