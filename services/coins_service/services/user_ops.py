"""User lifecycle: registration with a referral code, deactivation, blocking."""

import re
import secrets
import uuid
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from services.coins_service.errors import (
    DuplicateUserError,
    PersistenceError,
    UserNotFoundError,
)
from services.coins_service.models import ActivityType, User
from services.coins_service.services.activity_log import ActivityLogger, RequestContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

REFERRAL_CODE_ATTEMPTS = 10


def generate_referral_code(name: str) -> str:
    """First three letters of the name, upper-cased, plus four hex digits.

    Names with fewer than three letters are padded with ``X``.
    """
    prefix = re.sub(r"[^A-Za-z]", "", name or "")[:3].upper().ljust(3, "X")
    return f"{prefix}{secrets.token_hex(2).upper()}"


async def _code_taken(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(User.id).where(User.referral_code == code))
    return result.scalar_one_or_none() is not None


async def create_user(
    db: AsyncSession,
    *,
    name: str,
    email: str,
    user_id: Optional[uuid.UUID] = None,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> User:
    """Register a user with zero coins and a fresh referral code."""
    email = email.strip().lower()
    existing = await db.execute(select(User.id).where(User.email == email))
    if existing.scalar_one_or_none() is not None:
        raise DuplicateUserError()

    for _ in range(REFERRAL_CODE_ATTEMPTS):
        code = generate_referral_code(name)
        if not await _code_taken(db, code):
            break
    else:
        logger.error("Could not find a free referral code for %s", email)
        raise PersistenceError()

    user = User(
        id=user_id or uuid.uuid4(),
        name=name.strip(),
        email=email,
        balance=0,
        referral_code=code,
        applied_referrals=[],
        referral_count=0,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateUserError()
    await db.refresh(user)

    logger.info("Created user %s with referral code %s", user.id, user.referral_code)
    if activity_logger is not None:
        await activity_logger.log(
            user.id,
            ActivityType.USER_CREATED,
            details={"referral_code": user.referral_code},
            context=context,
        )
    return user


async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
    """Get user by id. Raises UserNotFoundError if missing."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


async def get_user_by_referral_code(db: AsyncSession, code: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.referral_code == code.strip().upper())
    )
    return result.scalar_one_or_none()


async def _set_flags(
    db: AsyncSession,
    user_id: uuid.UUID,
    activity_type: ActivityType,
    activity_logger: Optional[ActivityLogger],
    context: Optional[RequestContext],
    details: Optional[dict] = None,
    **values,
) -> User:
    user = await get_user(db, user_id)
    for attr, value in values.items():
        setattr(user, attr, value)
    user.version = User.version + 1
    await db.commit()
    await db.refresh(user)

    logger.info("User %s: %s", user_id, activity_type.value)
    if activity_logger is not None:
        await activity_logger.log(
            user_id, activity_type, details=details, context=context
        )
    return user


async def deactivate_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> User:
    """Soft-delete: the user keeps their coins and ledger but earns no rewards."""
    return await _set_flags(
        db,
        user_id,
        ActivityType.ACCOUNT_DEACTIVATED,
        activity_logger,
        context,
        is_active=False,
    )


async def block_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    reason: str,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> User:
    return await _set_flags(
        db,
        user_id,
        ActivityType.ACCOUNT_BLOCKED,
        activity_logger,
        context,
        details={"reason": reason},
        is_blocked=True,
        block_reason=reason,
        blocked_at=utc_now(),
    )


async def unblock_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    activity_logger: Optional[ActivityLogger] = None,
    context: Optional[RequestContext] = None,
) -> User:
    return await _set_flags(
        db,
        user_id,
        ActivityType.ACCOUNT_UNBLOCKED,
        activity_logger,
        context,
        is_blocked=False,
        block_reason=None,
        blocked_at=None,
    )
