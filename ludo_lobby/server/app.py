"""
ludo-lobby server application.

    python -m ludo_lobby.server        (or the ludo-lobby script)

A LobbyServer owns one Store, one ConnectionManager and one Router.
Every socket runs in its own task: greet it, then feed its messages to
the router one at a time until it hangs up. Joins and leaves from
different sockets race only inside the database, where the session row
lock orders them.

Environment:

    LUDO_DB_URL           async SQLAlchemy URL (or DB_HOST, DB_PORT, ...)
    LUDO_LOCK_TIMEOUT_MS  session row lock wait (default: 5000)
    LUDO_HOST             bind host (default: 0.0.0.0)
    LUDO_PORT             bind port (default: 9090)
    LUDO_LOG_LEVEL        logging level (default: INFO)
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal

import websockets
from websockets.asyncio.server import Server, ServerConnection, serve

from ludo_lobby import __version__
from ludo_lobby.server.connections import ConnectedClient, ConnectionManager
from ludo_lobby.server.protocol import ErrorCode, Message, MsgType, error, welcome
from ludo_lobby.server.router import Router
from ludo_lobby.service import LobbyService
from ludo_lobby.store.session import Store

logger = logging.getLogger(__name__)

HELLO_TIMEOUT = 15.0
MAX_MESSAGE_BYTES = 64 * 1024


class LobbyServer:
    """WebSocket front end for LobbyService."""

    VERSION = __version__

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 9090,
        store: Store | None = None,
    ):
        self.host  = host
        self.port  = port
        self.store = store
        self.connections = ConnectionManager()
        self.router: Router | None = None
        self._listener: Server | None = None

    async def start(self) -> None:
        """Open the store, make sure the schema exists, start listening."""
        if self.store is None:
            self.store = Store()
        await self.store.create_tables()

        self.router = Router(
            self.connections,
            LobbyService(self.store),
            server_version=self.VERSION,
        )
        self._listener = await serve(
            self._serve_socket,
            self.host,
            self.port,
            max_size=MAX_MESSAGE_BYTES,
        )
        logger.info(f"ludo-lobby {self.VERSION} on ws://{self.host}:{self.port} ({self.store.dialect})")

    async def stop(self) -> None:
        """Close every socket, then the connection pool.

        A handler cancelled mid-request rolls its transaction back.
        """
        if self._listener is not None:
            self._listener.close()
            await self._listener.wait_closed()
            self._listener = None
        if self.store is not None:
            await self.store.dispose()
        logger.info("ludo-lobby stopped.")

    async def serve_until_signalled(self) -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        await self.start()
        await stop.wait()
        logger.info("Signal received, shutting down.")
        await self.stop()

    # ── Per-socket task ───────────────────────────────────────

    async def _serve_socket(self, ws: ServerConnection) -> None:
        client = await self._greet(ws)
        if client is None:
            return
        try:
            async for raw in ws:
                if not await self._handle_frame(ws, client, raw):
                    break
        except websockets.exceptions.ConnectionClosed:
            pass
        except Exception as e:
            logger.exception(f"Socket task for {client.client_name!r} failed: {e}")
        finally:
            self.connections.unregister(client)

    async def _greet(self, ws: ServerConnection) -> ConnectedClient | None:
        """Require hello as the first frame; answer with welcome."""
        try:
            msg = Message.parse(await asyncio.wait_for(ws.recv(), HELLO_TIMEOUT))
        except (asyncio.TimeoutError, ValueError, websockets.exceptions.ConnectionClosed) as e:
            logger.warning(f"No usable hello from {ws.remote_address}: {e!r}")
            await ws.close()
            return None

        if msg.type != MsgType.HELLO:
            await ws.send(error(msg.msg_id, ErrorCode.INVALID, "First message must be hello").serialize())
            await ws.close()
            return None

        client = self.connections.register(ws, str(msg.get("client_name") or "unknown"))
        await ws.send(welcome(
            connection_id=str(client.connection_id),
            request_id=msg.msg_id,
            server_version=self.VERSION,
        ).serialize())
        return client

    async def _handle_frame(self, ws: ServerConnection, client: ConnectedClient, raw) -> bool:
        """Answer one frame. Returns False once the client said bye."""
        try:
            msg = Message.parse(raw)
        except ValueError as e:
            await ws.send(error(None, ErrorCode.INVALID, f"Malformed message: {e}").serialize())
            return True

        reply = await self.router.dispatch(msg, client)
        if reply is not None:
            await ws.send(reply.serialize())

        if msg.type == MsgType.BYE:
            await ws.close()
            return False
        return True


def main() -> None:
    """Entry point: python -m ludo_lobby.server"""
    level = os.environ.get("LUDO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    server = LobbyServer(
        host=os.environ.get("LUDO_HOST", "0.0.0.0"),
        port=int(os.environ.get("LUDO_PORT", "9090")),
    )
    asyncio.run(server.serve_until_signalled())


if __name__ == "__main__":
    main()
