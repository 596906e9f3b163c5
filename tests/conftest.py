"""
Shared fixtures for ludo-lobby tests.

Every test that touches the store gets its own SQLite file under
tmp_path, so tests never see each other's rows. The file (rather than
:memory:) lets the pool hand out separate connections, which the
concurrency tests rely on.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from ludo_lobby.service import LobbyService
from ludo_lobby.store.models import DBUser
from ludo_lobby.store.session import Store


def sqlite_url(path) -> str:
    return f"sqlite+aiosqlite:///{path}"


@pytest_asyncio.fixture
async def store(tmp_path):
    store = Store(sqlite_url(tmp_path / "lobby.db"))
    await store.create_tables()
    yield store
    await store.dispose()


@pytest.fixture
def service(store) -> LobbyService:
    return LobbyService(store)


@pytest.fixture
def make_users(store):
    """Insert registered users directly and return their ids.

    Usage:
        u1, u2 = await make_users(2)
    """
    counter = {"n": 0}

    async def _make(count: int = 1) -> list[int]:
        async with store.transaction() as session:
            rows = []
            for _ in range(count):
                counter["n"] += 1
                n = counter["n"]
                rows.append(DBUser(
                    name=f"player{n}",
                    email=f"player{n}@example.com",
                    status=True,
                    is_guest=False,
                ))
            session.add_all(rows)
            await session.flush()
            return [row.id for row in rows]

    return _make
