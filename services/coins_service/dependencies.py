"""FastAPI dependencies shared by the Coins Service routers."""

import uuid

from fastapi import Depends, Request
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.ttl_cache import TTLCache
from libs.db.session import get_session_factory
from services.coins_service.errors import UserNotFoundError
from services.coins_service.services.activity_log import ActivityLogger, RequestContext
from services.coins_service.services.referral_ops import ReferralPolicy


def get_current_user_id(current_user: AuthUser = Depends(get_current_user)) -> uuid.UUID:
    """The caller's user id. Token subjects that are not UUIDs have no account."""
    try:
        return uuid.UUID(current_user.user_id)
    except ValueError:
        raise UserNotFoundError(f"User {current_user.user_id} not found")


def get_activity_logger(session_factory=Depends(get_session_factory)) -> ActivityLogger:
    return ActivityLogger(session_factory)


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


def get_referral_policy() -> ReferralPolicy:
    return ReferralPolicy.from_settings(get_settings())


def get_analytics_cache(request: Request) -> TTLCache:
    return request.app.state.analytics_cache
