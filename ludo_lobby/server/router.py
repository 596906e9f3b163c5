"""
ludo-lobby message router.

Every message that arrives from a client comes here. The router owns a
ConnectionManager and a LobbyService and is the only place in the server
that touches both the store (through the service) and the connection
layer.

Design:
  - Each message type maps to one handler method
  - Handlers are async coroutines that call LobbyService
  - After a change commits, the router broadcasts a lobby event to the
    other connected clients
  - LobbyError subclasses become error replies with a stable code:

        ValidationError      → INVALID
        NotFoundError        → NOT_FOUND     (details.reason)
        ConflictError        → CONFLICT      (details.reason)
        TransientStoreError  → UNAVAILABLE   (retry is safe)
        anything else        → INTERNAL

    Errors never crash the server or disconnect the client.
"""

from __future__ import annotations

import logging
from typing import Callable

from ludo_lobby.core.errors import (
    ConflictError,
    NotFoundError,
    OccupancyDriftError,
    TransientStoreError,
    ValidationError,
)
from ludo_lobby.core.vocabulary import validate_id
from ludo_lobby.server.connections import ConnectedClient, ConnectionManager
from ludo_lobby.server.protocol import (
    ErrorCode, EventType, Message, MsgType,
    error, ok, pong, welcome,
)
from ludo_lobby.service import LobbyService

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Router
# ─────────────────────────────────────────────────────────────

class Router:
    """Dispatches incoming messages to handler methods.

    Holds:
        connections  — ConnectionManager (live WebSocket state)
        service      — LobbyService (all lobby operations)

    All handlers follow the signature:
        async def _handle_*(
            self,
            msg: Message,
            client: ConnectedClient,
        ) -> Message | None
    """

    def __init__(
        self,
        connections: ConnectionManager,
        service: LobbyService,
        server_version: str = "0.1.0",
    ):
        self.connections    = connections
        self.service        = service
        self.server_version = server_version
        self._dispatch: dict[str, Callable] = {
            MsgType.HELLO: self._handle_hello,
            MsgType.PING:  self._handle_ping,
            MsgType.BYE:   self._handle_bye,

            # Users
            MsgType.GUEST_LOGIN: self._handle_guest_login,

            # Sessions
            MsgType.SESSION_CREATE:    self._handle_session_create,
            MsgType.SESSION_GET:       self._handle_session_get,
            MsgType.SESSION_LIST:      self._handle_session_list,
            MsgType.SESSION_AVAILABLE: self._handle_session_available,
            MsgType.SESSION_BY_STATUS: self._handle_session_by_status,
            MsgType.SESSION_UPDATE:    self._handle_session_update,
            MsgType.SESSION_DELETE:    self._handle_session_delete,

            # Membership
            MsgType.MEMBER_ADD:    self._handle_member_add,
            MsgType.MEMBER_REMOVE: self._handle_member_remove,
            MsgType.MEMBER_LIST:   self._handle_member_list,
        }

    async def dispatch(
        self,
        msg: Message,
        client: ConnectedClient,
    ) -> Message | None:
        """Route a message to the right handler.

        Returns a reply message, or None if no reply should be sent
        (e.g. BYE is fire-and-forget).
        """
        handler = self._dispatch.get(msg.type)
        if handler is None:
            return error(
                msg.msg_id,
                ErrorCode.UNKNOWN_TYPE,
                f"Unknown message type: {msg.type!r}",
            )
        try:
            return await handler(msg, client)
        except ValidationError as e:
            return error(msg.msg_id, ErrorCode.INVALID, str(e), {"field": e.field})
        except NotFoundError as e:
            return error(msg.msg_id, ErrorCode.NOT_FOUND, str(e), {"reason": e.reason})
        except ConflictError as e:
            return error(msg.msg_id, ErrorCode.CONFLICT, str(e), {"reason": e.reason})
        except TransientStoreError as e:
            logger.warning(f"Transient failure handling {msg.type!r}: {e}")
            return error(msg.msg_id, ErrorCode.UNAVAILABLE, str(e))
        except OccupancyDriftError as e:
            # Already logged by the coordinator
            return error(msg.msg_id, ErrorCode.INTERNAL, str(e))
        except Exception as e:
            logger.exception(f"Unhandled error in handler for {msg.type!r}: {e}")
            return error(
                msg.msg_id,
                ErrorCode.INTERNAL,
                f"Internal server error: {e}",
            )

    # ─────────────────────────────────────────────────────────
    # Handshake
    # ─────────────────────────────────────────────────────────

    async def _handle_hello(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        # The handshake itself is done by the server before dispatch.
        # A repeated hello just gets the welcome again.
        return welcome(
            connection_id=str(client.connection_id),
            request_id=msg.msg_id,
            server_version=self.server_version,
        )

    async def _handle_ping(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        return pong(msg.msg_id)

    async def _handle_bye(
        self, msg: Message, client: ConnectedClient
    ) -> None:
        # Disconnect is handled by the server's connection loop
        return None

    # ─────────────────────────────────────────────────────────
    # Users
    # ─────────────────────────────────────────────────────────

    async def _handle_guest_login(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        user = await self.service.guest_login()
        return ok(msg.msg_id, {"user": user.to_dict()})

    # ─────────────────────────────────────────────────────────
    # Sessions
    # ─────────────────────────────────────────────────────────

    async def _handle_session_create(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        lobby = await self.service.create_session(
            msg.get("name"),
            status=msg.get("status"),
            capacity=msg.get("capacity"),
        )
        await self.connections.announce(
            EventType.SESSION_CREATED,
            {"session": lobby.to_dict()},
            session_id=lobby.id,
            origin=client,
        )
        return ok(msg.msg_id, {"session": lobby.to_dict()})

    async def _handle_session_get(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        lobby = await self.service.get_session(msg.get("session_id"))
        return ok(msg.msg_id, {"session": lobby.to_dict()})

    async def _handle_session_list(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        sessions = await self.service.list_sessions()
        return ok(msg.msg_id, {"sessions": [s.to_dict() for s in sessions]})

    async def _handle_session_available(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        sessions = await self.service.list_available_sessions()
        return ok(msg.msg_id, {"sessions": [s.to_dict() for s in sessions]})

    async def _handle_session_by_status(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        sessions = await self.service.list_sessions_by_status(msg.get("status"))
        return ok(msg.msg_id, {"sessions": [s.to_dict() for s in sessions]})

    async def _handle_session_update(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        lobby = await self.service.update_session(
            msg.get("session_id"),
            name=msg.get("name"),
            status=msg.get("status"),
            capacity=msg.get("capacity"),
        )
        await self.connections.announce(
            EventType.SESSION_UPDATED,
            {"session": lobby.to_dict()},
            session_id=lobby.id,
            origin=client,
        )
        return ok(msg.msg_id, {"session": lobby.to_dict()})

    async def _handle_session_delete(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        session_id = validate_id(msg.get("session_id"), "session_id")
        if not await self.service.delete_session(session_id):
            raise NotFoundError(NotFoundError.SESSION)
        await self.connections.announce(
            EventType.SESSION_DELETED,
            {"session_id": session_id},
            session_id=session_id,
            origin=client,
        )
        return ok(msg.msg_id, {"deleted": True})

    # ─────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────

    async def _handle_member_add(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        user_id = validate_id(msg.get("user_id"), "user_id")
        lobby   = await self.service.add_member(msg.get("session_id"), user_id)
        await self.connections.announce(
            EventType.MEMBER_JOINED,
            {"user_id": user_id, "session": lobby.to_dict()},
            session_id=lobby.id,
            origin=client,
        )
        return ok(msg.msg_id, {"session": lobby.to_dict()})

    async def _handle_member_remove(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        user_id = validate_id(msg.get("user_id"), "user_id")
        lobby   = await self.service.remove_member(msg.get("session_id"), user_id)
        await self.connections.announce(
            EventType.MEMBER_LEFT,
            {"user_id": user_id, "session": lobby.to_dict()},
            session_id=lobby.id,
            origin=client,
        )
        return ok(msg.msg_id, {"session": lobby.to_dict()})

    async def _handle_member_list(
        self, msg: Message, client: ConnectedClient
    ) -> Message:
        users = await self.service.list_members(msg.get("session_id"))
        return ok(msg.msg_id, {"users": [u.to_dict() for u in users]})
