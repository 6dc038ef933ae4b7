"""Best-effort user activity logging.

Entries are written in a session of their own, after the business change has
committed, so a failed write here can never undo or block a balance mutation.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from libs.common.logging import get_logger
from libs.common.rate_limit import get_client_ip
from services.coins_service.models import UserActivityLog
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Who asked, as far as the HTTP layer can tell."""

    ip: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        return cls(
            ip=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )


class ActivityLogger:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def log(
        self,
        user_id: uuid.UUID,
        activity_type: str,
        details: Optional[dict[str, Any]] = None,
        context: Optional[RequestContext] = None,
    ) -> bool:
        """Persist one entry. Returns False instead of raising on failure."""
        context = context or RequestContext()
        entry = UserActivityLog(
            user_id=user_id,
            activity_type=str(getattr(activity_type, "value", activity_type)),
            details=details or {},
            ip=context.ip,
            user_agent=context.user_agent,
        )
        try:
            async with self._session_factory() as session:
                session.add(entry)
                await session.commit()
        except Exception:
            logger.warning(
                "Could not record activity %s for user %s",
                entry.activity_type,
                user_id,
                exc_info=True,
            )
            return False
        return True


async def list_activity(
    db: AsyncSession, user_id: uuid.UUID, *, limit: int = 50
) -> list[UserActivityLog]:
    """Most recent activity entries for a user, newest first."""
    result = await db.execute(
        select(UserActivityLog)
        .where(UserActivityLog.user_id == user_id)
        .order_by(desc(UserActivityLog.created_at))
        .limit(limit)
    )
    return list(result.scalars().all())
