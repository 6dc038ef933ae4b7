"""FastAPI application for the Coins Service."""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from libs.common.ttl_cache import Clock, TTLCache
from services.coins_service.errors import CoinsError, PersistenceError
from services.coins_service.routers.admin import router as admin_router
from services.coins_service.routers.member import router as coins_router
from services.coins_service.routers.referrals import router as referrals_router
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

logger = get_logger(__name__)


async def coins_error_handler(request: Request, exc: CoinsError) -> JSONResponse:
    if exc.status_code >= 500:
        # Detail stays in the logs
        logger.error("%s on %s %s", exc.code, request.method, request.url.path)
        detail = PersistenceError.__doc__
    else:
        detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "detail": detail},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception(
        "Unhandled database error on %s %s", request.method, request.url.path
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": PersistenceError.code, "detail": PersistenceError.__doc__},
    )


def create_app(analytics_clock: Optional[Clock] = None) -> FastAPI:
    """Create and configure the Coins Service FastAPI app."""
    settings = get_settings()
    app = FastAPI(
        title="Coins Service",
        version="0.1.0",
        description="Coin balances, ledger and referral rewards.",
    )
    add_observability_middleware(app)

    app.state.limiter = limiter
    app.state.analytics_cache = (
        TTLCache(settings.ANALYTICS_CACHE_TTL_SECONDS, clock=analytics_clock)
        if analytics_clock
        else TTLCache(settings.ANALYTICS_CACHE_TTL_SECONDS)
    )

    app.add_exception_handler(CoinsError, coins_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "coins"}

    # Member-facing routes
    app.include_router(coins_router)
    app.include_router(referrals_router)

    # Admin routes
    app.include_router(admin_router)

    return app


app = create_app()
