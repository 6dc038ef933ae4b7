"""Enums for the Coins Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class TransactionType(str, enum.Enum):
    REWARD_CREDIT = "reward_credit"
    REWARD_DEBIT = "reward_debit"
    REFERRAL_REWARD = "referral_reward"
    REFERRAL_BONUS = "referral_bonus"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    PURCHASE_DEBIT = "purchase_debit"
    PURCHASE_REFUND = "purchase_refund"
    FRAUD_PENALTY = "fraud_penalty"


class TransactionStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class ActivityType(str, enum.Enum):
    USER_CREATED = "user_created"
    COINS_ADDED = "coins_added"
    COINS_REMOVED = "coins_removed"
    REFERRAL_APPLIED = "referral_applied"
    REFERRAL_CREDITED = "referral_credited"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    ACCOUNT_BLOCKED = "account_blocked"
    ACCOUNT_UNBLOCKED = "account_unblocked"


class IntegrityStatus(str, enum.Enum):
    OK = "ok"
    MISMATCH = "mismatch"
