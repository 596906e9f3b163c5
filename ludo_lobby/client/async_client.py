"""
ludo-lobby async client.

One socket, one reader task. Requests carry a uuid "id"; the reader
matches each ok/error/pong reply to the future waiting on that id and
hands event pushes to listeners registered with on().

    async with AsyncClient.connect("table_7", "ws://lobby:9090") as client:
        me    = await client.guest_login()
        lobby = await client.create_session("Friday night", capacity=3)
        await client.join(lobby["id"])

There is no automatic reconnect: when the socket drops, waiting
requests fail with ConnectionError and the caller decides what to do.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable

import websockets
import websockets.asyncio.client as ws_asyncio

from ludo_lobby.server.protocol import (
    ErrorCode, Message, MsgType,
    bye, guest_login, hello,
    member_add, member_list, member_remove,
    session_available, session_by_status, session_create, session_delete,
    session_get, session_list, session_update,
)

logger = logging.getLogger(__name__)


class ClientError(Exception):
    """Base error for client operations."""


class ServerError(ClientError):
    """The server answered with an error message.

    code is a protocol.ErrorCode; details may carry "field" (INVALID)
    or "reason" (NOT_FOUND, CONFLICT).
    """
    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code    = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code}] {message}")

    @property
    def reason(self) -> str | None:
        return self.details.get("reason")


class ConnectionError(ClientError):
    """Handshake failed or the socket closed under a pending request."""


class TimeoutError(ClientError):
    """No reply arrived in time."""


class AsyncClient:
    """Request/reply and event client for a LobbyServer.

    user_id is the lobby user join() and leave() act for when no
    explicit id is given; guest_login() sets it.
    """

    DEFAULT_TIMEOUT = 30.0
    HELLO_TIMEOUT   = 15.0

    def __init__(
        self,
        client_name: str,
        server_url: str = "ws://localhost:9090",
        user_id: int | None = None,
        request_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.client_name     = client_name
        self.server_url      = server_url
        self.user_id         = user_id
        self.request_timeout = request_timeout

        self.connection_id:  str | None = None
        self.server_version: str | None = None

        self._ws = None
        self._reader: asyncio.Task | None = None
        self._waiting: dict[str, asyncio.Future] = {}
        self._listeners: dict[str, list[Callable]] = defaultdict(list)

    @classmethod
    @asynccontextmanager
    async def connect(
        cls,
        client_name: str,
        server_url: str = "ws://localhost:9090",
        **kwargs,
    ) -> AsyncGenerator["AsyncClient", None]:
        client = cls(client_name, server_url, **kwargs)
        await client.start()
        try:
            yield client
        finally:
            await client.stop()

    # ── Lifecycle ─────────────────────────────────────────────

    async def start(self) -> None:
        """Open the socket, trade hello for welcome, start the reader."""
        self._ws = await ws_asyncio.connect(self.server_url)
        await self._ws.send(hello(self.client_name).serialize())
        try:
            reply = Message.parse(await asyncio.wait_for(self._ws.recv(), self.HELLO_TIMEOUT))
        except (asyncio.TimeoutError, websockets.exceptions.ConnectionClosed) as e:
            await self._ws.close()
            raise ConnectionError(f"No welcome from {self.server_url}: {e!r}") from e

        if reply.type != MsgType.WELCOME:
            await self._ws.close()
            raise ConnectionError(f"Expected welcome, got {reply.type!r}: {reply.get('message', '')}")

        self.connection_id  = reply.get("connection_id")
        self.server_version = reply.get("server_version")
        self._reader = asyncio.create_task(self._read(), name=f"ludo-client-{self.client_name}")
        logger.info(f"{self.client_name!r} connected to {self.server_url} ({self.connection_id})")

    async def stop(self) -> None:
        """Say bye and close. Pending requests fail with ConnectionError."""
        if self._ws is not None:
            try:
                await self._ws.send(bye().serialize())
                await self._ws.close()
            except websockets.exceptions.WebSocketException:
                pass
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        self._fail_waiting(ConnectionError("Client stopped"))

    @property
    def is_connected(self) -> bool:
        return self._reader is not None and not self._reader.done()

    # ── Requests ──────────────────────────────────────────────

    async def request(self, msg: Message, timeout: float | None = None) -> dict:
        """Send msg and return the "result" of its ok reply.

        Raises ServerError on an error reply, TimeoutError when nothing
        comes back, ConnectionError when the socket is gone.
        """
        if not self.is_connected:
            raise ConnectionError("Not connected")
        if not msg.msg_id:
            raise ClientError("Message has no id; build it with the protocol constructors")

        future = asyncio.get_running_loop().create_future()
        self._waiting[msg.msg_id] = future
        wait = timeout or self.request_timeout
        try:
            await self._ws.send(msg.serialize())
            reply = await asyncio.wait_for(future, wait)
        except asyncio.TimeoutError:
            raise TimeoutError(f"No reply to {msg.type!r} within {wait}s") from None
        except websockets.exceptions.ConnectionClosed as e:
            raise ConnectionError(f"Connection closed while sending {msg.type!r}") from e
        finally:
            self._waiting.pop(msg.msg_id, None)

        if reply.type == MsgType.ERROR:
            raise ServerError(
                reply.get("code", ErrorCode.INTERNAL),
                reply.get("message", ""),
                reply.get("details"),
            )
        return reply.get("result") or {}

    # ── Lobby helpers ─────────────────────────────────────────

    async def guest_login(self) -> dict:
        user = (await self.request(guest_login()))["user"]
        self.user_id = user["id"]
        return user

    async def create_session(
        self,
        name: str,
        status: str | None = None,
        capacity: int | None = None,
    ) -> dict:
        return (await self.request(session_create(name, status=status, capacity=capacity)))["session"]

    async def get_session(self, session_id: int) -> dict:
        return (await self.request(session_get(session_id)))["session"]

    async def list_sessions(self) -> list[dict]:
        return (await self.request(session_list()))["sessions"]

    async def list_available_sessions(self) -> list[dict]:
        return (await self.request(session_available()))["sessions"]

    async def list_sessions_by_status(self, status: str) -> list[dict]:
        return (await self.request(session_by_status(status)))["sessions"]

    async def update_session(self, session_id: int, **fields) -> dict:
        return (await self.request(session_update(session_id, **fields)))["session"]

    async def delete_session(self, session_id: int) -> bool:
        return (await self.request(session_delete(session_id)))["deleted"]

    async def join(self, session_id: int, user_id: int | None = None) -> dict:
        uid = self.user_id if user_id is None else user_id
        return (await self.request(member_add(session_id, uid)))["session"]

    async def leave(self, session_id: int, user_id: int | None = None) -> dict:
        uid = self.user_id if user_id is None else user_id
        return (await self.request(member_remove(session_id, uid)))["session"]

    async def list_members(self, session_id: int) -> list[dict]:
        return (await self.request(member_list(session_id)))["users"]

    # ── Events ────────────────────────────────────────────────

    def on(self, event_type: str) -> Callable:
        """Decorator registering fn(event) for an event type, or "*" for all.

        fn may be a plain function or a coroutine function.
        """
        def register(fn: Callable) -> Callable:
            self._listeners[event_type].append(fn)
            return fn
        return register

    def off(self, event_type: str, fn: Callable) -> None:
        if fn in self._listeners.get(event_type, ()):
            self._listeners[event_type].remove(fn)

    # ── Reader ────────────────────────────────────────────────

    async def _read(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    msg = Message.parse(raw)
                except ValueError as e:
                    logger.warning(f"Unparseable frame from server: {e}")
                    continue

                if msg.type == MsgType.EVENT:
                    await self._notify(msg)
                elif msg.msg_id in self._waiting:
                    future = self._waiting[msg.msg_id]
                    if not future.done():
                        future.set_result(msg)
                else:
                    logger.debug(f"Unmatched {msg.type!r} reply {msg.msg_id}")
        except websockets.exceptions.ConnectionClosedError as e:
            logger.warning(f"{self.client_name!r} lost its connection: {e}")
        self._fail_waiting(ConnectionError("Connection closed"))

    async def _notify(self, msg: Message) -> None:
        event_type = msg.get("event_type")
        for fn in list(self._listeners.get(event_type, ())) + list(self._listeners.get("*", ())):
            try:
                result = fn(dict(msg))
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.exception(f"Listener for {event_type!r} raised: {e}")

    def _fail_waiting(self, exc: Exception) -> None:
        for future in self._waiting.values():
            if not future.done():
                future.set_exception(exc)
        self._waiting.clear()
