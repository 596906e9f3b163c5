"""
ludo-lobby service facade.

LobbyService is the set of operations the boundary layer calls. It
validates input (raising ValidationError before any transaction is
opened), opens a transaction per operation, and hands back core value
objects. Membership changes are delegated to the MembershipCoordinator,
which manages its own locked transactions.

    store   = Store()
    service = LobbyService(store)
    lobby   = await service.create_session("Friday night", capacity=3)
    await service.add_member(lobby.id, user_id)
"""

from __future__ import annotations

from typing import Any

from ludo_lobby.core.entities import Session, UserSummary
from ludo_lobby.core.errors import NotFoundError, ValidationError
from ludo_lobby.core.vocabulary import (
    validate_capacity,
    validate_id,
    validate_name,
    validate_status,
)
from ludo_lobby.store.membership import MembershipCoordinator
from ludo_lobby.store.repo import MembershipQuery, SessionRepo, UserRepo
from ludo_lobby.store.session import Store


class LobbyService:
    """Session CRUD, membership changes and membership listing."""

    def __init__(self, store: Store):
        self.store       = store
        self.coordinator = MembershipCoordinator(store)

    # ── Sessions ──────────────────────────────────────────────

    async def create_session(
        self,
        name: Any,
        status: Any = None,
        capacity: Any = None,
    ) -> Session:
        name = validate_name(name)
        if status is not None and not isinstance(status, str):
            raise ValidationError("status", "status must be a string")
        # Empty or blank status falls back to DEFAULT_STATUS in the repo
        status = validate_status(status) if status and status.strip() else None
        if capacity is not None:
            capacity = validate_capacity(capacity)

        async with self.store.transaction() as session:
            return await SessionRepo(session).create(name, status=status, capacity=capacity)

    async def get_session(self, session_id: Any) -> Session:
        session_id = validate_id(session_id, "session_id")
        async with self.store.transaction() as session:
            found = await SessionRepo(session).get(session_id)
        if found is None:
            raise NotFoundError(NotFoundError.SESSION)
        return found

    async def list_sessions(self) -> list[Session]:
        async with self.store.transaction() as session:
            return await SessionRepo(session).list_all()

    async def list_available_sessions(self) -> list[Session]:
        async with self.store.transaction() as session:
            return await SessionRepo(session).list_available()

    async def list_sessions_by_status(self, status: Any) -> list[Session]:
        status = validate_status(status)
        async with self.store.transaction() as session:
            return await SessionRepo(session).list_by_status(status)

    async def update_session(
        self,
        session_id: Any,
        name: Any = None,
        status: Any = None,
        capacity: Any = None,
    ) -> Session:
        """Change any of name, status, capacity. Omitted fields stay as they are.

        Lowering capacity below the current occupancy raises
        ConflictError("capacity below occupancy").
        """
        session_id = validate_id(session_id, "session_id")
        if name is not None:
            name = validate_name(name)
        if status is not None:
            status = validate_status(status)
        if capacity is not None:
            capacity = validate_capacity(capacity)

        async with self.store.transaction(locking=True) as session:
            updated = await SessionRepo(session).update(
                session_id, name=name, status=status, capacity=capacity,
            )
        if updated is None:
            raise NotFoundError(NotFoundError.SESSION)
        return updated

    async def delete_session(self, session_id: Any) -> bool:
        session_id = validate_id(session_id, "session_id")
        async with self.store.transaction() as session:
            return await SessionRepo(session).delete(session_id)

    # ── Membership ────────────────────────────────────────────

    async def add_member(self, session_id: Any, user_id: Any) -> Session:
        session_id = validate_id(session_id, "session_id")
        user_id    = validate_id(user_id, "user_id")
        return await self.coordinator.add_member(session_id, user_id)

    async def remove_member(self, session_id: Any, user_id: Any) -> Session:
        session_id = validate_id(session_id, "session_id")
        user_id    = validate_id(user_id, "user_id")
        return await self.coordinator.remove_member(session_id, user_id)

    async def list_members(self, session_id: Any) -> list[UserSummary]:
        session_id = validate_id(session_id, "session_id")
        async with self.store.transaction() as session:
            if await SessionRepo(session).get(session_id) is None:
                raise NotFoundError(NotFoundError.SESSION)
            return await MembershipQuery(session).get_users(session_id)

    # ── Users ─────────────────────────────────────────────────

    async def guest_login(self) -> UserSummary:
        """Create a guest account with a random Guest_xxxxxxxx name."""
        async with self.store.transaction() as session:
            return await UserRepo(session).create_guest()
