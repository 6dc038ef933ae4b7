"""Referral schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field
from services.coins_service.schemas.user import AppliedReferral


class ApplyReferralRequest(BaseModel):
    code: str = Field(..., max_length=20)


class ApplyReferralResponse(BaseModel):
    balance: int
    bonus: int
    referrer_id: uuid.UUID
    referral_id: uuid.UUID


class ReferralSummaryResponse(BaseModel):
    referral_code: str
    referral_count: int
    total_earned: int
    applied_referral: Optional[AppliedReferral] = None


class ReferredUserResponse(BaseModel):
    referral_id: uuid.UUID
    user_id: uuid.UUID
    name: str
    code_used: str
    reward: int
    referred_at: datetime


class ReferredUserListResponse(BaseModel):
    referrals: list[ReferredUserResponse]
    total: int
    skip: int
    limit: int
