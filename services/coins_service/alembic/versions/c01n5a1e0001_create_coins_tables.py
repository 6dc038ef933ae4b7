"""create_coins_tables

Revision ID: c01n5a1e0001
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "c01n5a1e0001"
down_revision = None
branch_labels = None
depends_on = None

TRANSACTION_TYPES = (
    "reward_credit",
    "reward_debit",
    "referral_reward",
    "referral_bonus",
    "admin_adjustment",
    "purchase_debit",
    "purchase_refund",
    "fraud_penalty",
)
TRANSACTION_STATUSES = ("completed", "failed")


def _json():
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("referral_code", sa.String(length=20), nullable=False),
        sa.Column("applied_referrals", _json(), nullable=False),
        sa.Column("referral_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("block_reason", sa.Text(), nullable=True),
        sa.Column("blocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_user_balance_non_negative"),
        sa.CheckConstraint(
            "referral_count >= 0", name="ck_user_referral_count_non_negative"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_referral_code", "users", ["referral_code"], unique=True)

    op.create_table(
        "coin_transactions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum(*TRANSACTION_TYPES, name="coin_transaction_type_enum"),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*TRANSACTION_STATUSES, name="coin_transaction_status_enum"),
            nullable=False,
        ),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("txn_metadata", _json(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount != 0", name="ck_coin_transaction_amount_non_zero"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_coin_transactions_idempotency_key",
        "coin_transactions",
        ["idempotency_key"],
        unique=True,
    )
    op.create_index(
        "ix_coin_transactions_user_id", "coin_transactions", ["user_id"]
    )
    op.create_index(
        "ix_coin_transactions_user_created",
        "coin_transactions",
        ["user_id", "created_at"],
    )

    op.create_table(
        "referral_records",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("referrer_id", sa.Uuid(), nullable=False),
        sa.Column("referred_id", sa.Uuid(), nullable=False),
        sa.Column("code_used", sa.String(length=20), nullable=False),
        sa.Column("referrer_reward", sa.Integer(), nullable=False),
        sa.Column("referred_bonus", sa.Integer(), nullable=False),
        sa.Column("referrer_transaction_id", sa.Uuid(), nullable=True),
        sa.Column("referred_transaction_id", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["referrer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["referred_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_referral_records_referrer_id", "referral_records", ["referrer_id"]
    )
    op.create_index(
        "ix_referral_records_referred_id",
        "referral_records",
        ["referred_id"],
        unique=True,
    )

    op.create_table(
        "user_activity_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("details", _json(), nullable=False),
        sa.Column("ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_user_activity_logs_user_created",
        "user_activity_logs",
        ["user_id", "created_at"],
    )
    op.create_index(
        "ix_user_activity_logs_type_ip_created",
        "user_activity_logs",
        ["activity_type", "ip", "created_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_user_activity_logs_type_ip_created", table_name="user_activity_logs"
    )
    op.drop_index("ix_user_activity_logs_user_created", table_name="user_activity_logs")
    op.drop_table("user_activity_logs")
    op.drop_index("ix_referral_records_referred_id", table_name="referral_records")
    op.drop_index("ix_referral_records_referrer_id", table_name="referral_records")
    op.drop_table("referral_records")
    op.drop_index("ix_coin_transactions_user_created", table_name="coin_transactions")
    op.drop_index("ix_coin_transactions_user_id", table_name="coin_transactions")
    op.drop_index(
        "ix_coin_transactions_idempotency_key", table_name="coin_transactions"
    )
    op.drop_table("coin_transactions")
    op.drop_index("ix_users_referral_code", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    sa.Enum(name="coin_transaction_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="coin_transaction_type_enum").drop(op.get_bind(), checkfirst=True)
