"""
ludo-lobby database schema.

Table design principles:

  1. Integer identity keys assigned by the store. Ids are opaque to
     callers; nothing derives meaning from their value except ordering
     (newest-first listings sort by id descending).

  2. occupancy on sessions is a denormalized count of session_users
     rows. It exists so availability filtering is a single-table
     predicate (occupancy < capacity) instead of a COUNT per session.
     The membership coordinator is its only writer.

  3. The database enforces what it can: capacity bounds, the occupancy
     range, and pair uniqueness on session_users through its composite
     primary key. The coordinator still checks everything under the row
     lock so callers get a precise reason instead of a constraint
     violation.

  4. All times in UTC, stored as TIMESTAMP WITH TIME ZONE.

Schema overview:

  users           — players (registered or guest); read-only to the core
  sessions        — joinable lobbies with capacity and occupancy
  session_users   — membership join relation, unique (session_id, user_id)
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.sql import func

from ludo_lobby.core.vocabulary import DEFAULT_CAPACITY, DEFAULT_STATUS, MAX_CAPACITY, MIN_CAPACITY


# ─────────────────────────────────────────────────────────────
# Base
# ─────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ─────────────────────────────────────────────────────────────
# Users
# ─────────────────────────────────────────────────────────────

class DBUser(Base):
    """A player account.

    Guests have no email or password and is_guest set. status is the
    account's active flag.
    """
    __tablename__ = "users"

    id            = Column(Integer, primary_key=True, autoincrement=True)
    name          = Column(String(128), nullable=False)
    email         = Column(String(256), nullable=True, unique=True)
    password_hash = Column(String(256), nullable=True)
    status        = Column(Boolean, nullable=False, default=True)
    is_guest      = Column(Boolean, nullable=False, default=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    memberships = relationship(
        "DBSessionUser", back_populates="user",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        kind = "guest" if self.is_guest else "user"
        return f"<DBUser {self.name!r} id={self.id} ({kind})>"


# ─────────────────────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────────────────────

class DBSession(Base):
    """A game lobby.

    capacity  — maximum simultaneous members, 2..4
    occupancy — number of session_users rows for this session
    """
    __tablename__ = "sessions"

    id        = Column(Integer, primary_key=True, autoincrement=True)
    name      = Column(String(256), nullable=False)
    status    = Column(String(64), nullable=False, default=DEFAULT_STATUS)
    capacity  = Column(Integer, nullable=False, default=DEFAULT_CAPACITY)
    occupancy = Column(Integer, nullable=False, default=0)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    members = relationship(
        "DBSessionUser", back_populates="session",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint(
            f"capacity >= {MIN_CAPACITY} AND capacity <= {MAX_CAPACITY}",
            name="ck_sessions_capacity",
        ),
        CheckConstraint(
            "occupancy >= 0 AND occupancy <= capacity",
            name="ck_sessions_occupancy",
        ),
        Index("ix_sessions_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<DBSession {self.name!r} id={self.id} {self.occupancy}/{self.capacity}>"


# ─────────────────────────────────────────────────────────────
# Membership (join relation)
# ─────────────────────────────────────────────────────────────

class DBSessionUser(Base):
    """One user occupying one slot in one session.

    Created by MembershipCoordinator.add_member, destroyed by
    remove_member. Rows disappear with their session or user via
    ON DELETE CASCADE.
    """
    __tablename__ = "session_users"

    session_id = Column(
        Integer,
        ForeignKey("sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id    = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    session = relationship("DBSession", back_populates="members")
    user    = relationship("DBUser",    back_populates="memberships")

    def __repr__(self) -> str:
        return f"<DBSessionUser session={self.session_id} user={self.user_id}>"
