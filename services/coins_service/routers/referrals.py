"""Referral endpoints."""

import uuid

from fastapi import APIRouter, Depends, Query, Request
from libs.common.config import get_settings
from libs.common.rate_limit import limiter
from libs.db.session import get_async_db
from services.coins_service.dependencies import (
    get_activity_logger,
    get_current_user_id,
    get_referral_policy,
    get_request_context,
)
from services.coins_service.schemas import (
    ApplyReferralRequest,
    ApplyReferralResponse,
    ReferralSummaryResponse,
    ReferredUserListResponse,
    ReferredUserResponse,
)
from services.coins_service.services import referral_ops
from services.coins_service.services.activity_log import ActivityLogger, RequestContext
from services.coins_service.services.referral_ops import ReferralPolicy
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/referrals", tags=["referrals"])


@router.post("/apply", response_model=ApplyReferralResponse)
@limiter.limit(get_settings().REFERRAL_APPLY_RATE_LIMIT)
async def apply_referral_code(
    request: Request,
    body: ApplyReferralRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
    policy: ReferralPolicy = Depends(get_referral_policy),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
    context: RequestContext = Depends(get_request_context),
):
    """Redeem someone else's referral code. Allowed once per user."""
    result = await referral_ops.apply_referral(
        db,
        user_id=user_id,
        code=body.code,
        policy=policy,
        activity_logger=activity_logger,
        context=context,
    )
    return ApplyReferralResponse(
        balance=result.balance,
        bonus=policy.referred_bonus,
        referrer_id=result.referrer_id,
        referral_id=result.referral.id,
    )


@router.get("/me", response_model=ReferralSummaryResponse)
async def get_my_referrals(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    """My referral code, how many people used it, and what it earned."""
    return await referral_ops.get_referral_summary(db, user_id)


@router.get("/me/referred", response_model=ReferredUserListResponse)
async def list_my_referred_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_async_db),
):
    rows, total = await referral_ops.list_referrals(
        db, user_id, limit=limit, offset=skip
    )
    referrals = [
        ReferredUserResponse(
            referral_id=record.id,
            user_id=referred.id,
            name=referred.name,
            code_used=record.code_used,
            reward=record.referrer_reward,
            referred_at=record.created_at,
        )
        for record, referred in rows
    ]
    return ReferredUserListResponse(
        referrals=referrals, total=total, skip=skip, limit=limit
    )
