"""Coins Service schemas package.

Re-exports all schemas so routers import from one place.
When adding a new schema, add its import and __all__ entry.
"""

from services.coins_service.schemas.admin import (  # noqa: F401
    ActivityLogEntry,
    ActivityLogListResponse,
    CoinAnalyticsResponse,
)
from services.coins_service.schemas.referral import (  # noqa: F401
    ApplyReferralRequest,
    ApplyReferralResponse,
    ReferralSummaryResponse,
    ReferredUserListResponse,
    ReferredUserResponse,
)
from services.coins_service.schemas.transaction import (  # noqa: F401
    AdjustBalanceRequest,
    CoinMutationRequest,
    IntegrityReportResponse,
    MutationResponse,
    StoreOrderRequest,
    TransactionListResponse,
    TransactionResponse,
    TransactionStatsResponse,
    TypeTotals,
)
from services.coins_service.schemas.user import (  # noqa: F401
    AppliedReferral,
    BalanceResponse,
    BlockUserRequest,
    UserCreateRequest,
    UserResponse,
)

__all__ = [
    # User
    "AppliedReferral",
    "BalanceResponse",
    "BlockUserRequest",
    "UserCreateRequest",
    "UserResponse",
    # Transaction
    "AdjustBalanceRequest",
    "CoinMutationRequest",
    "IntegrityReportResponse",
    "MutationResponse",
    "StoreOrderRequest",
    "TransactionListResponse",
    "TransactionResponse",
    "TransactionStatsResponse",
    "TypeTotals",
    # Referral
    "ApplyReferralRequest",
    "ApplyReferralResponse",
    "ReferralSummaryResponse",
    "ReferredUserListResponse",
    "ReferredUserResponse",
    # Admin
    "ActivityLogEntry",
    "ActivityLogListResponse",
    "CoinAnalyticsResponse",
]
