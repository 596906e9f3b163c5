"""
ludo-lobby repository layer.

All database reads and writes go through Repository classes (and the
MembershipCoordinator in store/membership.py). Nothing outside the
store package writes SQL directly.

Each repository takes an AsyncSession and operates within whatever
transaction the caller manages. LobbyService opens those transactions
via Store.transaction().

Repositories translate between:
  - DB models    (store/models.py   — what the database stores)
  - Core objects (core/entities.py  — what the rest of the system uses)
"""

from __future__ import annotations

import secrets
import string
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ludo_lobby.core.entities import Session, UserSummary
from ludo_lobby.core.errors import ConflictError
from ludo_lobby.core.vocabulary import DEFAULT_CAPACITY, DEFAULT_STATUS
from ludo_lobby.store.models import DBSession, DBSessionUser, DBUser, utcnow


# ─────────────────────────────────────────────────────────────
# Session Repository
# ─────────────────────────────────────────────────────────────

class SessionRepo:
    """Persist and load lobby sessions.

    Listings are newest-first (id descending). occupancy is never
    written here except for its initial 0 on create.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        status: str | None = None,
        capacity: int | None = None,
    ) -> Session:
        now = utcnow()
        db_session = DBSession(
            name=name,
            status=status or DEFAULT_STATUS,
            capacity=capacity if capacity is not None else DEFAULT_CAPACITY,
            occupancy=0,
            created_at=now,
            updated_at=now,
        )
        self.session.add(db_session)
        await self.session.flush()
        return self.to_core(db_session)

    async def get(self, session_id: int) -> Session | None:
        db_session = await self.session.get(DBSession, session_id)
        return self.to_core(db_session) if db_session else None

    async def get_for_update(self, session_id: int) -> DBSession | None:
        """Load the session row and hold an exclusive lock on it.

        The lock lasts until the surrounding transaction ends. Any other
        transaction asking for the same row blocks here.
        """
        result = await self.session.execute(
            select(DBSession)
            .where(DBSession.id == session_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Session]:
        result = await self.session.execute(
            select(DBSession).order_by(DBSession.id.desc())
        )
        return [self.to_core(s) for s in result.scalars().all()]

    async def list_available(self) -> list[Session]:
        result = await self.session.execute(
            select(DBSession)
            .where(DBSession.occupancy < DBSession.capacity)
            .order_by(DBSession.id.desc())
        )
        return [self.to_core(s) for s in result.scalars().all()]

    async def list_by_status(self, status: str) -> list[Session]:
        result = await self.session.execute(
            select(DBSession)
            .where(DBSession.status == status)
            .order_by(DBSession.id.desc())
        )
        return [self.to_core(s) for s in result.scalars().all()]

    async def update(
        self,
        session_id: int,
        *,
        name: str | None = None,
        status: str | None = None,
        capacity: int | None = None,
    ) -> Session | None:
        """Apply the given fields and refresh updated_at.

        The row is locked first so a capacity change cannot interleave
        with a concurrent join: the new capacity is checked against the
        occupancy the coordinator will see next.
        """
        existing = await self.get_for_update(session_id)
        if existing is None:
            return None

        if capacity is not None and capacity < existing.occupancy:
            raise ConflictError(ConflictError.CAPACITY_TOO_SMALL)

        if name is not None:
            existing.name = name
        if status is not None:
            existing.status = status
        if capacity is not None:
            existing.capacity = capacity
        existing.updated_at = utcnow()

        await self.session.flush()
        return self.to_core(existing)

    async def delete(self, session_id: int) -> bool:
        """Delete a session. Membership rows go with it via ON DELETE CASCADE."""
        result = await self.session.execute(
            delete(DBSession).where(DBSession.id == session_id)
        )
        return result.rowcount > 0

    @staticmethod
    def to_core(db: DBSession) -> Session:
        return Session(
            id=db.id,
            name=db.name,
            status=db.status,
            capacity=db.capacity,
            occupancy=db.occupancy,
            created_at=db.created_at,
            updated_at=db.updated_at,
        )


# ─────────────────────────────────────────────────────────────
# User Repository
# ─────────────────────────────────────────────────────────────

_GUEST_ALPHABET = string.ascii_lowercase + string.digits


def guest_name() -> str:
    """Guest_ followed by 8 random base-36 characters."""
    return "Guest_" + "".join(secrets.choice(_GUEST_ALPHABET) for _ in range(8))


class UserRepo:
    """Read user existence; create guest accounts.

    Registered-account management lives outside this service.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, user_id: int) -> bool:
        result = await self.session.execute(
            select(DBUser.id).where(DBUser.id == user_id)
        )
        return result.scalar_one_or_none() is not None

    async def create_guest(self) -> UserSummary:
        db_user = DBUser(
            name=guest_name(),
            email=None,
            password_hash=None,
            status=True,
            is_guest=True,
            created_at=utcnow(),
        )
        self.session.add(db_user)
        await self.session.flush()
        return self.to_core(db_user)

    @staticmethod
    def to_core(db: DBUser) -> UserSummary:
        return UserSummary(
            id=db.id,
            name=db.name,
            email=db.email,
            status=db.status,
            is_guest=db.is_guest,
            created_at=db.created_at,
        )


# ─────────────────────────────────────────────────────────────
# Membership Query
# ─────────────────────────────────────────────────────────────

class MembershipQuery:
    """Read path over session_users joined to users.

    No locking. A listing that misses a join committed a moment later
    is acceptable.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_users(self, session_id: int) -> list[UserSummary]:
        """Every member of a session, ordered by user id ascending."""
        result = await self.session.execute(
            select(DBUser)
            .join(DBSessionUser, DBSessionUser.user_id == DBUser.id)
            .where(DBSessionUser.session_id == session_id)
            .order_by(DBUser.id.asc())
        )
        return [UserRepo.to_core(u) for u in result.scalars().all()]

    async def count(self, session_id: int) -> int:
        """Number of membership rows for a session — the true occupancy."""
        result = await self.session.execute(
            select(func.count())
            .select_from(DBSessionUser)
            .where(DBSessionUser.session_id == session_id)
        )
        return result.scalar_one()

    async def is_member(self, session_id: int, user_id: int) -> bool:
        result = await self.session.execute(
            select(DBSessionUser.user_id).where(
                DBSessionUser.session_id == session_id,
                DBSessionUser.user_id    == user_id,
            )
        )
        return result.scalar_one_or_none() is not None
