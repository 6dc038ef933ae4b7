"""Coins Service models package.

Re-exports all models and enums so that Alembic env.py and SQLAlchemy's
mapper registry see every model class on import.

When adding a new model, add both its import and its __all__ entry.
"""

from services.coins_service.models.activity import UserActivityLog  # noqa: F401
from services.coins_service.models.enums import (  # noqa: F401
    ActivityType,
    IntegrityStatus,
    TransactionStatus,
    TransactionType,
)
from services.coins_service.models.referral import ReferralRecord  # noqa: F401
from services.coins_service.models.transaction import CoinTransaction  # noqa: F401
from services.coins_service.models.user import User  # noqa: F401

__all__ = [
    # Enums
    "ActivityType",
    "IntegrityStatus",
    "TransactionStatus",
    "TransactionType",
    # Models
    "CoinTransaction",
    "ReferralRecord",
    "User",
    "UserActivityLog",
]
