"""
ludo-lobby integration tests.

Spins up a real LobbyServer on a fixed local port backed by a SQLite
file, connects AsyncClients, and exercises the full
request/response/event cycle over the WebSocket.

Run with: pytest tests/test_integration.py -v

Postgres is not required. The server builds its own Store against a
throwaway SQLite database inside the server thread.
"""

from __future__ import annotations

import asyncio
import json
import threading
import uuid

import pytest
import websockets
import websockets.asyncio.client as ws_asyncio

from ludo_lobby import __version__
from ludo_lobby.client.async_client import AsyncClient, ServerError
from ludo_lobby.client.async_client import ConnectionError as ClientConnectionError
from ludo_lobby.server.app import LobbyServer
from ludo_lobby.server.protocol import (
    ErrorCode, EventType, Message, MsgType,
    bye, hello, ping, session_get,
)
from ludo_lobby.store.session import Store


# ─────────────────────────────────────────────────────────────
# Server fixture
# ─────────────────────────────────────────────────────────────

class LobbyTestServer:
    """A LobbyServer running on localhost in a background thread.

    The WebSocket layer and the store are both real; only the database
    engine differs from production.
    """

    def __init__(self, port: int, db_path):
        self.port    = port
        self.url     = f"ws://localhost:{port}"
        self.db_url  = f"sqlite+aiosqlite:///{db_path}"
        self._server: LobbyServer | None = None
        self._thread: threading.Thread | None = None
        self._loop:   asyncio.AbstractEventLoop | None = None
        self._ready   = threading.Event()
        self._error:  BaseException | None = None

    def start(self) -> None:
        """Start the server in a background thread."""
        self._thread = threading.Thread(
            target=self._run, name="ludo-test-server", daemon=True
        )
        self._thread.start()
        assert self._ready.wait(timeout=10), "Test server did not start in time"
        if self._error is not None:
            raise self._error

    def stop(self) -> None:
        if self._loop and self._loop.is_running():
            asyncio.run_coroutine_threadsafe(
                self._server.stop(), self._loop
            ).result(timeout=5)
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread:
            self._thread.join(timeout=5)

    def _run(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)

        # The engine must be created on the loop that will use it
        self._server = LobbyServer(
            host="127.0.0.1",
            port=self.port,
            store=Store(self.db_url),
        )
        try:
            self._loop.run_until_complete(self._server.start())
        except BaseException as e:
            self._error = e
            self._ready.set()
            return

        self._ready.set()
        self._loop.run_forever()


# ─────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def test_server(tmp_path_factory):
    """Module-scoped test server on port 19990."""
    db_path = tmp_path_factory.mktemp("lobby") / "lobby.db"
    server = LobbyTestServer(port=19990, db_path=db_path)
    server.start()
    yield server
    server.stop()


@pytest.fixture
def server_url(test_server):
    return test_server.url


# ─────────────────────────────────────────────────────────────
# Connection and handshake
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestHandshake:

    async def test_connect_and_welcome(self, server_url):
        """Client connects, server sends welcome with a connection id."""
        async with AsyncClient.connect("test_welcome", server_url) as client:
            assert client.is_connected
            assert client.connection_id is not None
            assert client.server_version == __version__

    async def test_ping_pong(self, server_url):
        async with AsyncClient.connect("test_ping", server_url) as client:
            assert await client.request(ping()) == {}

    async def test_first_message_must_be_hello(self, server_url):
        async with ws_asyncio.connect(server_url) as ws:
            await ws.send(session_get(1).serialize())
            reply = Message.parse(await ws.recv())
            assert reply.type == MsgType.ERROR
            assert reply["code"] == ErrorCode.INVALID

    async def test_unparseable_hello_closes_socket(self, server_url):
        async with ws_asyncio.connect(server_url) as ws:
            await ws.send("{not json")
            with pytest.raises(websockets.exceptions.ConnectionClosed):
                await ws.recv()

    async def test_requests_fail_once_server_hangs_up(self, server_url):
        """After the server closes the socket, requests fail fast instead of hanging."""
        client = AsyncClient("test_hangup", server_url)
        await client.start()
        try:
            # bye makes the server close its end
            await client._ws.send(bye().serialize())
            await asyncio.wait_for(client._reader, timeout=5.0)
            assert not client.is_connected
            with pytest.raises(ClientConnectionError):
                await client.list_sessions()
        finally:
            await client.stop()

    async def test_malformed_json_keeps_connection(self, server_url):
        async with ws_asyncio.connect(server_url) as ws:
            await ws.send(hello("raw").serialize())
            assert Message.parse(await ws.recv()).type == MsgType.WELCOME

            await ws.send("{not json")
            reply = Message.parse(await ws.recv())
            assert reply["code"] == ErrorCode.INVALID

            request_id = str(uuid.uuid4())
            await ws.send(json.dumps({"type": MsgType.PING, "id": request_id}))
            reply = Message.parse(await ws.recv())
            assert reply.type == MsgType.PONG
            assert reply.msg_id == request_id

    async def test_unknown_message_type_returns_error(self, server_url):
        async with AsyncClient.connect("test_unknown", server_url) as client:
            with pytest.raises(ServerError) as exc:
                await client.request(Message({"type": "nonsense", "id": str(uuid.uuid4())}))
            assert exc.value.code == ErrorCode.UNKNOWN_TYPE


# ─────────────────────────────────────────────────────────────
# Sessions over the wire
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSessionOps:

    async def test_create_and_get(self, server_url):
        async with AsyncClient.connect("test_create", server_url) as client:
            lobby = await client.create_session("Wire lobby", capacity=3)
            assert lobby["capacity"] == 3
            assert lobby["occupancy"] == 0
            assert lobby["status"] == "waiting"

            fetched = await client.get_session(lobby["id"])
            assert fetched["name"] == "Wire lobby"

    async def test_get_missing(self, server_url):
        async with AsyncClient.connect("test_missing", server_url) as client:
            with pytest.raises(ServerError) as exc:
                await client.get_session(999_999)
            assert exc.value.code == ErrorCode.NOT_FOUND
            assert exc.value.reason == "session"

    async def test_invalid_capacity(self, server_url):
        async with AsyncClient.connect("test_capacity", server_url) as client:
            with pytest.raises(ServerError) as exc:
                await client.create_session("Too many", capacity=6)
            assert exc.value.code == ErrorCode.INVALID
            assert exc.value.details["field"] == "capacity"

    async def test_malformed_id(self, server_url):
        async with AsyncClient.connect("test_bad_id", server_url) as client:
            with pytest.raises(ServerError) as exc:
                await client.get_session("abc")
            assert exc.value.code == ErrorCode.INVALID

    async def test_list_and_filters(self, server_url):
        async with AsyncClient.connect("test_lists", server_url) as client:
            tag = f"status-{uuid.uuid4().hex[:8]}"
            a = await client.create_session("A", status=tag, capacity=2)
            b = await client.create_session("B", status=tag, capacity=2)

            by_status = await client.list_sessions_by_status(tag)
            assert [s["id"] for s in by_status] == [b["id"], a["id"]]

            all_ids = [s["id"] for s in await client.list_sessions()]
            assert a["id"] in all_ids and b["id"] in all_ids

            me    = await client.guest_login()
            other = await client.guest_login()
            await client.join(a["id"], me["id"])
            await client.join(a["id"], other["id"])

            available = [s["id"] for s in await client.list_available_sessions()]
            assert a["id"] not in available
            assert b["id"] in available

    async def test_update_and_delete(self, server_url):
        async with AsyncClient.connect("test_update", server_url) as client:
            lobby = await client.create_session("Before")
            updated = await client.update_session(lobby["id"], name="After", status="playing")
            assert updated["name"] == "After"
            assert updated["status"] == "playing"

            assert await client.delete_session(lobby["id"]) is True
            with pytest.raises(ServerError) as exc:
                await client.delete_session(lobby["id"])
            assert exc.value.code == ErrorCode.NOT_FOUND

    async def test_capacity_below_occupancy(self, server_url):
        async with AsyncClient.connect("test_shrink", server_url) as client:
            lobby = await client.create_session("Shrink", capacity=4)
            for _ in range(3):
                guest = await client.guest_login()
                await client.join(lobby["id"], guest["id"])

            with pytest.raises(ServerError) as exc:
                await client.update_session(lobby["id"], capacity=2)
            assert exc.value.code == ErrorCode.CONFLICT
            assert exc.value.reason == "capacity below occupancy"


# ─────────────────────────────────────────────────────────────
# Membership over the wire
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestMembershipOps:

    async def test_guest_login_sets_user(self, server_url):
        async with AsyncClient.connect("test_guest", server_url) as client:
            user = await client.guest_login()
            assert user["is_guest"] is True
            assert user["name"].startswith("Guest_")
            assert client.user_id == user["id"]

    async def test_join_leave_scenario(self, server_url):
        async with AsyncClient.connect("test_scenario", server_url) as client:
            lobby = await client.create_session("Pair", capacity=2)
            u1, u2, u3 = [await client.guest_login() for _ in range(3)]

            assert (await client.join(lobby["id"], u1["id"]))["occupancy"] == 1
            assert (await client.join(lobby["id"], u2["id"]))["occupancy"] == 2

            with pytest.raises(ServerError) as exc:
                await client.join(lobby["id"], u3["id"])
            assert exc.value.code == ErrorCode.CONFLICT
            assert exc.value.reason == "session full"

            assert (await client.leave(lobby["id"], u1["id"]))["occupancy"] == 1
            assert (await client.join(lobby["id"], u3["id"]))["occupancy"] == 2

            members = await client.list_members(lobby["id"])
            assert [u["id"] for u in members] == sorted([u2["id"], u3["id"]])

    async def test_duplicate_join(self, server_url):
        async with AsyncClient.connect("test_dup", server_url) as client:
            lobby = await client.create_session("Dup")
            me = await client.guest_login()
            await client.join(lobby["id"])
            with pytest.raises(ServerError) as exc:
                await client.join(lobby["id"])
            assert exc.value.code == ErrorCode.CONFLICT
            assert exc.value.reason == "already a member"
            assert (await client.get_session(lobby["id"]))["occupancy"] == 1
            assert [u["id"] for u in await client.list_members(lobby["id"])] == [me["id"]]

    async def test_leave_non_member(self, server_url):
        async with AsyncClient.connect("test_not_member", server_url) as client:
            lobby = await client.create_session("Empty")
            await client.guest_login()
            with pytest.raises(ServerError) as exc:
                await client.leave(lobby["id"])
            assert exc.value.code == ErrorCode.NOT_FOUND
            assert exc.value.reason == "not a member"

    async def test_join_unknown_user(self, server_url):
        async with AsyncClient.connect("test_ghost", server_url) as client:
            lobby = await client.create_session("Ghost")
            with pytest.raises(ServerError) as exc:
                await client.join(lobby["id"], 999_999)
            assert exc.value.code == ErrorCode.NOT_FOUND
            assert exc.value.reason == "user"

    async def test_concurrent_joins_from_many_clients(self, server_url):
        """Five connections race for two slots; exactly two win."""
        async with AsyncClient.connect("test_host", server_url) as host:
            lobby = await host.create_session("Rush", capacity=2)

        clients = [AsyncClient(f"racer_{i}", server_url) for i in range(5)]
        for c in clients:
            await c.start()
        try:
            for c in clients:
                await c.guest_login()

            results = await asyncio.gather(
                *[c.join(lobby["id"]) for c in clients],
                return_exceptions=True,
            )
        finally:
            for c in clients:
                await c.stop()

        wins   = [r for r in results if isinstance(r, dict)]
        losses = [r for r in results if isinstance(r, ServerError)]
        assert len(wins) == 2
        assert len(losses) == 3
        assert all(e.reason == "session full" for e in losses)

        async with AsyncClient.connect("test_check", server_url) as check:
            final = await check.get_session(lobby["id"])
            assert final["occupancy"] == 2
            assert len(await check.list_members(lobby["id"])) == 2


# ─────────────────────────────────────────────────────────────
# Events
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestEvents:

    async def test_member_joined_broadcast(self, server_url):
        """A join on one connection is pushed to the others."""
        async with AsyncClient.connect("test_watcher", server_url) as watcher, \
                   AsyncClient.connect("test_actor", server_url) as actor:
            received: asyncio.Future = asyncio.get_running_loop().create_future()

            @watcher.on(EventType.MEMBER_JOINED)
            async def on_join(event):
                if not received.done():
                    received.set_result(event)

            lobby = await actor.create_session("Watched")
            me    = await actor.guest_login()
            await actor.join(lobby["id"])

            event = await asyncio.wait_for(received, timeout=5.0)
            assert event["session_id"] == lobby["id"]
            assert event["payload"]["user_id"] == me["id"]
            assert event["payload"]["session"]["occupancy"] == 1

    async def test_session_created_broadcast(self, server_url):
        async with AsyncClient.connect("test_watcher2", server_url) as watcher, \
                   AsyncClient.connect("test_actor2", server_url) as actor:
            seen: list[dict] = []
            got = asyncio.Event()

            @watcher.on("*")
            def on_any(event):
                seen.append(event)
                if event["event_type"] == EventType.SESSION_CREATED:
                    got.set()

            lobby = await actor.create_session("Announced")
            await asyncio.wait_for(got.wait(), timeout=5.0)

            created = [e for e in seen if e["event_type"] == EventType.SESSION_CREATED]
            assert any(e["payload"]["session"]["id"] == lobby["id"] for e in created)

    async def test_listener_removed_with_off(self, server_url):
        async with AsyncClient.connect("test_off", server_url) as client:
            calls = []

            def listener(event):
                calls.append(event)

            client.on(EventType.SESSION_DELETED)(listener)
            client.off(EventType.SESSION_DELETED, listener)
            assert listener not in client._listeners[EventType.SESSION_DELETED]
