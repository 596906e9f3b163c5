"""
ludo-lobby connection registry.

Keeps the set of sockets that completed the hello handshake and fans
lobby events out to them once a change has committed. Lobby state is
never kept here; the database is the only source of truth, so two
server processes behind one database stay consistent.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass

import websockets
from websockets.asyncio.server import ServerConnection

from ludo_lobby.server.protocol import Message, event as make_event

logger = logging.getLogger(__name__)


@dataclass
class ConnectedClient:
    """One live socket and the name it introduced itself with."""
    connection_id: uuid.UUID
    ws:            ServerConnection
    client_name:   str

    @property
    def peer(self) -> str:
        address = self.ws.remote_address
        if not address:
            return "unknown"
        return f"{address[0]}:{address[1]}"

    async def push(self, msg: Message) -> bool:
        try:
            await self.ws.send(msg.serialize())
        except websockets.exceptions.ConnectionClosed as e:
            logger.debug(f"Dropped push to {self.client_name!r}: {e}")
            return False
        return True


class ConnectionManager:
    """Registry of handshaken connections, keyed by connection id.

    Only touched from the server's event loop.
    """

    def __init__(self):
        self._clients: dict[uuid.UUID, ConnectedClient] = {}

    @property
    def count(self) -> int:
        return len(self._clients)

    def register(self, ws: ServerConnection, client_name: str) -> ConnectedClient:
        client = ConnectedClient(uuid.uuid4(), ws, client_name)
        self._clients[client.connection_id] = client
        logger.info(f"{client_name!r} joined from {client.peer} as {client.connection_id} ({self.count} connected)")
        return client

    def unregister(self, client: ConnectedClient) -> None:
        if self._clients.pop(client.connection_id, None) is not None:
            logger.info(f"{client.client_name!r} left ({client.connection_id}, {self.count} connected)")

    async def announce(
        self,
        event_type: str,
        payload: dict,
        session_id: int | None = None,
        origin: ConnectedClient | None = None,
    ) -> int:
        """Push a lobby event to everyone except origin.

        origin already learned the outcome from its ok reply. Returns how
        many sockets accepted the push.
        """
        msg = make_event(event_type, payload, session_id=session_id)
        targets = [c for c in self._clients.values() if c is not origin]
        if not targets:
            return 0
        delivered = await asyncio.gather(
            *(c.push(msg) for c in targets), return_exceptions=True,
        )
        return sum(1 for d in delivered if d is True)
