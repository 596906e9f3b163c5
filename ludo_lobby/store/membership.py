"""
ludo-lobby membership coordinator.

Adds and removes user↔session memberships while keeping the session's
denormalized occupancy counter equal to its number of session_users
rows, and within [0, capacity].

Every operation runs in its own transaction and starts by locking the
session row (SELECT ... FOR UPDATE). That lock is the serialization
point: two joins racing for the last slot cannot both read
occupancy < capacity, because the second one blocks on the lock until
the first commits and then reads the incremented value. The lock is
per session row, so joins on different sessions never wait on each
other.

Nothing here uses an in-process lock. Correctness holds across any
number of server processes sharing the database.

Every rejection raises before anything is written, and raising inside
Store.transaction() rolls the whole transaction back. A store failure
after the lock is taken does the same.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from ludo_lobby.core.entities import Session
from ludo_lobby.core.errors import ConflictError, NotFoundError, OccupancyDriftError
from ludo_lobby.store.models import DBSessionUser, utcnow
from ludo_lobby.store.repo import MembershipQuery, SessionRepo, UserRepo
from ludo_lobby.store.session import Store

logger = logging.getLogger(__name__)


class MembershipCoordinator:
    """The only writer of sessions.occupancy and session_users.

    Holds:
        store  — the Store whose transactions this coordinator opens
    """

    def __init__(self, store: Store):
        self.store = store

    async def add_member(self, session_id: int, user_id: int) -> Session:
        """Add user_id to session_id.

        Returns the session as committed. Raises:
            NotFoundError("session")          no such session
            NotFoundError("user")             no such user
            ConflictError("already a member") pair already exists
            ConflictError("session full")     occupancy == capacity
            TransientStoreError               lock timeout / store failure
        """
        async with self.store.transaction(locking=True) as session:
            db_session = await SessionRepo(session).get_for_update(session_id)
            if db_session is None:
                raise NotFoundError(NotFoundError.SESSION)

            if not await UserRepo(session).exists(user_id):
                raise NotFoundError(NotFoundError.USER)

            if await MembershipQuery(session).is_member(session_id, user_id):
                logger.info(f"Join rejected: user {user_id} already in session {session_id}")
                raise ConflictError(ConflictError.ALREADY_MEMBER)

            if db_session.occupancy >= db_session.capacity:
                logger.info(
                    f"Join rejected: session {session_id} full "
                    f"({db_session.occupancy}/{db_session.capacity})"
                )
                raise ConflictError(ConflictError.SESSION_FULL)

            session.add(DBSessionUser(session_id=session_id, user_id=user_id))
            db_session.occupancy  = db_session.occupancy + 1
            db_session.updated_at = utcnow()

            try:
                await session.flush()
            except IntegrityError as exc:
                # Only reachable if something inserted the pair without
                # taking the session lock first.
                raise ConflictError(ConflictError.ALREADY_MEMBER) from exc

            result = SessionRepo.to_core(db_session)

        logger.debug(
            f"User {user_id} joined session {session_id} "
            f"({result.occupancy}/{result.capacity})"
        )
        return result

    async def remove_member(self, session_id: int, user_id: int) -> Session:
        """Remove user_id from session_id.

        Returns the session as committed. Raises:
            NotFoundError("session")       no such session
            NotFoundError("not a member")  no membership row for the pair
            OccupancyDriftError            counter already 0 with a row present
            TransientStoreError            lock timeout / store failure
        """
        async with self.store.transaction(locking=True) as session:
            db_session = await SessionRepo(session).get_for_update(session_id)
            if db_session is None:
                raise NotFoundError(NotFoundError.SESSION)

            deleted = await session.execute(
                delete(DBSessionUser).where(
                    DBSessionUser.session_id == session_id,
                    DBSessionUser.user_id    == user_id,
                )
            )
            if deleted.rowcount == 0:
                logger.info(f"Leave rejected: user {user_id} not in session {session_id}")
                raise NotFoundError(NotFoundError.NOT_A_MEMBER)

            if db_session.occupancy <= 0:
                logger.error(
                    f"Occupancy drift on session {session_id}: counter is "
                    f"{db_session.occupancy} but user {user_id} had a membership row"
                )
                raise OccupancyDriftError(session_id, db_session.occupancy)

            db_session.occupancy  = db_session.occupancy - 1
            db_session.updated_at = utcnow()
            await session.flush()

            result = SessionRepo.to_core(db_session)

        logger.debug(
            f"User {user_id} left session {session_id} "
            f"({result.occupancy}/{result.capacity})"
        )
        return result

