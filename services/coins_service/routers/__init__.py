"""Coins service routers."""

from services.coins_service.routers.admin import router as admin_router
from services.coins_service.routers.member import router as coins_router
from services.coins_service.routers.referrals import router as referrals_router

__all__ = [
    "admin_router",
    "coins_router",
    "referrals_router",
]
