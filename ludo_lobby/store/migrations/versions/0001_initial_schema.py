"""Initial schema — users, sessions, session_users.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Tables created:
  users
  sessions
  session_users
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id",            sa.Integer(),    primary_key=True, autoincrement=True),
        sa.Column("name",          sa.String(128),  nullable=False),
        sa.Column("email",         sa.String(256),  nullable=True, unique=True),
        sa.Column("password_hash", sa.String(256),  nullable=True),
        sa.Column("status",        sa.Boolean(),    nullable=False, server_default=sa.true()),
        sa.Column("is_guest",      sa.Boolean(),    nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── sessions ──────────────────────────────────────────────
    op.create_table(
        "sessions",
        sa.Column("id",        sa.Integer(),   primary_key=True, autoincrement=True),
        sa.Column("name",      sa.String(256), nullable=False),
        sa.Column("status",    sa.String(64),  nullable=False, server_default="waiting"),
        sa.Column("capacity",  sa.Integer(),   nullable=False, server_default="4"),
        sa.Column("occupancy", sa.Integer(),   nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("capacity >= 2 AND capacity <= 4", name="ck_sessions_capacity"),
        sa.CheckConstraint("occupancy >= 0 AND occupancy <= capacity", name="ck_sessions_occupancy"),
    )
    op.create_index("ix_sessions_status", "sessions", ["status"])

    # ── session_users ─────────────────────────────────────────
    op.create_table(
        "session_users",
        sa.Column("session_id", sa.Integer(),
                  sa.ForeignKey("sessions.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id",    sa.Integer(),
                  sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    )
    op.create_index("ix_session_users_user_id", "session_users", ["user_id"])


def downgrade() -> None:
    op.drop_table("session_users")
    op.drop_table("sessions")
    op.drop_table("users")
