"""Domain errors for the Coins Service.

Each error carries a stable ``code`` and the HTTP status it maps to.
``services.coins_service.app.main`` renders them as
``{"error": code, "detail": message}``.
"""

from fastapi import status


class CoinsError(Exception):
    code = "COINS_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = ""):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Validation failures: terminal, nothing written
# ---------------------------------------------------------------------------


class InvalidAmountError(CoinsError):
    """Amount must be a positive whole number of coins."""

    code = "INVALID_AMOUNT"


class InsufficientFundsError(CoinsError):
    """Not enough coins for this debit."""

    code = "INSUFFICIENT_FUNDS"

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance. Required: {required}, Available: {available}"
        )


class InvalidReferralCodeError(CoinsError):
    """Invalid referral code."""

    code = "INVALID_REFERRAL_CODE"


class SelfReferralForbiddenError(CoinsError):
    """You cannot use your own referral code."""

    code = "SELF_REFERRAL_FORBIDDEN"


class ReferrerInactiveError(CoinsError):
    """This referral code is no longer valid."""

    code = "REFERRER_INACTIVE"


class AlreadyReferredError(CoinsError):
    """You have already used a referral code."""

    code = "ALREADY_REFERRED"
    status_code = status.HTTP_409_CONFLICT


class UserNotFoundError(CoinsError):
    """User not found."""

    code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class DuplicateUserError(CoinsError):
    """A user with this email already exists."""

    code = "DUPLICATE_USER"
    status_code = status.HTTP_409_CONFLICT


class AccountInactiveError(CoinsError):
    """This account cannot receive rewards."""

    code = "ACCOUNT_INACTIVE"


# ---------------------------------------------------------------------------
# Limits: retry later
# ---------------------------------------------------------------------------


class RewardLimitReachedError(CoinsError):
    """Reward limit reached. Try again later."""

    code = "REWARD_LIMIT_REACHED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class ReferralNetworkLimitError(CoinsError):
    """A referral code was already applied from this network recently. Please try again later."""

    code = "RATE_LIMITED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


# ---------------------------------------------------------------------------
# Conflicts: retry the whole operation
# ---------------------------------------------------------------------------


class ConcurrentUpdateError(CoinsError):
    """The user was modified concurrently. Retry the request."""

    code = "CONCURRENT_UPDATE"
    status_code = status.HTTP_409_CONFLICT


class IdempotencyKeyConflictError(CoinsError):
    """This idempotency key was already used for a different operation."""

    code = "IDEMPOTENCY_KEY_CONFLICT"
    status_code = status.HTTP_409_CONFLICT


# ---------------------------------------------------------------------------
# Infrastructure: not applied, message never leaves the service
# ---------------------------------------------------------------------------


class PersistenceError(CoinsError):
    """Internal error. The operation was not applied."""

    code = "PERSISTENCE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
