"""Initial TaskKash schema.

Users, password reset tokens, the points ledger, tasks and submissions,
activities, withdrawals, and user/admin notifications.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _pk() -> sa.Column:
    return sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True)


def _user_fk(name: str = "user_id", ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.BigInteger(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    """Create all tables."""
    # --- users ---
    op.create_table(
        "users",
        _pk(),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("username", sa.String(20), nullable=True, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("social_links", JSONB, nullable=True),
        sa.Column("role", sa.String(16), server_default="user", nullable=False),
        sa.Column("status", sa.String(16), server_default="active", nullable=False),
        sa.Column("task_points", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("tasks_completed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("welcome_bonus_granted", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("last_login_bonus_on", sa.Date(), nullable=True),
        sa.Column("daily_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_streak_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_login", sa.DateTime(timezone=True), nullable=True),
        sa.Column("login_count", sa.Integer(), server_default="0", nullable=False),
        sa.CheckConstraint("task_points >= 0", name="ck_users_task_points_non_negative"),
    )
    op.create_index("ix_users_points_rank", "users", ["task_points", "tasks_completed"])

    # --- password_reset_tokens ---
    op.create_table(
        "password_reset_tokens",
        _pk(),
        _user_fk(),
        sa.Column("token_hash", sa.String(128), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
    )

    # --- transactions (ledger) ---
    op.create_table(
        "transactions",
        _pk(),
        _user_fk(),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("description", sa.String(256), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("reference_id", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_transactions_user_created", "transactions", ["user_id", "created_at"])

    # --- tasks ---
    op.create_table(
        "tasks",
        _pk(),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("instructions", sa.String(1000), nullable=False),
        sa.Column("category", sa.String(16), nullable=False),
        sa.Column("reward_points", sa.Integer(), nullable=False),
        sa.Column("validation_type", sa.String(100), nullable=False),
        sa.Column("task_link", sa.Text(), nullable=True),
        sa.Column("alternate_url", sa.Text(), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), server_default="active", nullable=False),
        _user_fk("created_by", ondelete="SET NULL", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- submissions ---
    op.create_table(
        "submissions",
        _pk(),
        _user_fk(),
        sa.Column("task_id", sa.BigInteger(), sa.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("proof_urls", JSONB, nullable=True),
        sa.Column("proof_link", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("reviewed_by", ondelete="SET NULL", nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column("awarded_points", sa.Integer(), nullable=True),
    )
    # At most one pending submission per (user, task)
    op.create_index(
        "uq_submissions_pending_user_task",
        "submissions",
        ["user_id", "task_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_index("ix_submissions_status_submitted", "submissions", ["status", "submitted_at"])

    # --- activities ---
    op.create_table(
        "activities",
        _pk(),
        _user_fk(),
        sa.Column("activity_type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("task_id", sa.BigInteger(), sa.ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activities_user_created", "activities", ["user_id", "created_at"])
    op.create_index("ix_activities_user_task_type", "activities", ["user_id", "task_id", "activity_type"])

    # --- withdrawals ---
    op.create_table(
        "withdrawals",
        _pk(),
        _user_fk(),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("converted_amount", sa.Numeric(12, 4), nullable=False),
        sa.Column("withdrawal_type", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("bank_name", sa.String(100), nullable=True),
        sa.Column("account_name", sa.String(100), nullable=True),
        sa.Column("account_number", sa.String(34), nullable=True),
        sa.Column("network", sa.String(16), nullable=True),
        sa.Column("wallet_address", sa.String(128), nullable=True),
        sa.Column("admin_note", sa.String(500), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("processed_by", ondelete="SET NULL", nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("withdrawal_type IN ('bank', 'crypto')", name="ck_withdrawals_type"),
    )
    op.create_index("ix_withdrawals_status_created", "withdrawals", ["status", "created_at"])

    # --- notifications ---
    op.create_table(
        "notifications",
        _pk(),
        _user_fk(),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("action_url", sa.String(512), nullable=True),
        sa.Column("read", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "read"])

    op.create_table(
        "admin_notifications",
        _pk(),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.BigInteger(), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("read", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables."""
    for table in (
        "admin_notifications",
        "notifications",
        "withdrawals",
        "activities",
        "submissions",
        "tasks",
        "transactions",
        "password_reset_tokens",
        "users",
    ):
        op.drop_table(table)
