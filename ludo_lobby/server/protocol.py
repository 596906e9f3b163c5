"""
ludo-lobby wire protocol.

Every message that crosses the socket is defined here — client→server
and server→client. Both sides import from this module. If it isn't
here it doesn't exist on the wire.

Message format: JSON object with at minimum:

    {
        "type": "<message_type>",
        "id":   "<uuid>",          # client-generated request ID (requests only)
        ...payload fields...
    }

Server responses always echo the request "id" so the client can
correlate responses to requests:

    {
        "type":   "ok",
        "id":     "<same uuid>",
        "result": {...}
    }

Errors:

    {
        "type":    "error",
        "id":      "<same uuid or null>",
        "code":    "CONFLICT",
        "message": "Session is full",
        "details": {"reason": "session full"}
    }

Events pushed by the server after a committed change (no request id):

    {
        "type":       "event",
        "event_type": "member.joined",
        "session_id": 12,
        "payload":    {...}
    }

Message types are grouped:
  - Handshake:   hello, welcome, ping, pong, bye
  - Users:       guest.login
  - Sessions:    session.*
  - Membership:  member.*
  - Server push: event
"""

from __future__ import annotations

import json
import uuid
from typing import Any


# ─────────────────────────────────────────────────────────────
# Message type constants
# ─────────────────────────────────────────────────────────────

class MsgType:
    # Handshake
    HELLO   = "hello"       # client → server on connect
    WELCOME = "welcome"     # server → client after hello
    PING    = "ping"        # either direction
    PONG    = "pong"        # reply to ping
    BYE     = "bye"         # clean disconnect notification

    # Generic responses
    OK      = "ok"          # server → client: success + optional result
    ERROR   = "error"       # server → client: failure

    # Users
    GUEST_LOGIN = "guest.login"

    # Sessions
    SESSION_CREATE    = "session.create"
    SESSION_GET       = "session.get"
    SESSION_LIST      = "session.list"
    SESSION_AVAILABLE = "session.available"
    SESSION_BY_STATUS = "session.by_status"
    SESSION_UPDATE    = "session.update"
    SESSION_DELETE    = "session.delete"

    # Membership
    MEMBER_ADD    = "member.add"
    MEMBER_REMOVE = "member.remove"
    MEMBER_LIST   = "member.list"

    # Server push
    EVENT = "event"             # server → clients: something changed


# ─────────────────────────────────────────────────────────────
# Event types (payload of MsgType.EVENT)
# ─────────────────────────────────────────────────────────────

class EventType:
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    SESSION_DELETED = "session.deleted"
    MEMBER_JOINED   = "member.joined"
    MEMBER_LEFT     = "member.left"


# ─────────────────────────────────────────────────────────────
# Error codes
# ─────────────────────────────────────────────────────────────

class ErrorCode:
    INVALID      = "INVALID"        # ValidationError, malformed message
    NOT_FOUND    = "NOT_FOUND"      # NotFoundError
    CONFLICT     = "CONFLICT"       # ConflictError
    UNAVAILABLE  = "UNAVAILABLE"    # TransientStoreError — retry is safe
    INTERNAL     = "INTERNAL"
    UNKNOWN_TYPE = "UNKNOWN_TYPE"


# ─────────────────────────────────────────────────────────────
# Base message helpers
# ─────────────────────────────────────────────────────────────

def _new_id() -> str:
    return str(uuid.uuid4())


class Message(dict):
    """A wire message — just a dict with a type field and helpers.

    We subclass dict so it serializes directly with json.dumps() and
    can be pattern-matched on ["type"] without unwrapping.
    """

    @classmethod
    def parse(cls, raw: str | bytes) -> "Message":
        """Deserialize a JSON string into a Message."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"Expected JSON object, got {type(data)}")
        if "type" not in data:
            raise ValueError("Message missing 'type' field")
        return cls(data)

    def serialize(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self)

    @property
    def type(self) -> str:
        return self["type"]

    @property
    def msg_id(self) -> str | None:
        return self.get("id")

    def is_request(self) -> bool:
        return "id" in self

    def __repr__(self) -> str:
        return f"Message(type={self.type!r}, id={self.msg_id!r})"


# ─────────────────────────────────────────────────────────────
# Constructors — client → server messages
# ─────────────────────────────────────────────────────────────

def hello(client_name: str) -> Message:
    """First message from client after connecting."""
    return Message({
        "type":        MsgType.HELLO,
        "id":          _new_id(),
        "client_name": client_name,
    })


def ping(msg_id: str | None = None) -> Message:
    return Message({"type": MsgType.PING, "id": msg_id or _new_id()})


def bye(reason: str = "client_shutdown") -> Message:
    return Message({"type": MsgType.BYE, "reason": reason})


def guest_login() -> Message:
    return Message({"type": MsgType.GUEST_LOGIN, "id": _new_id()})


# Session messages
def session_create(
    name: str,
    status: str | None = None,
    capacity: int | None = None,
) -> Message:
    msg: dict = {
        "type": MsgType.SESSION_CREATE,
        "id":   _new_id(),
        "name": name,
    }
    if status is not None:
        msg["status"] = status
    if capacity is not None:
        msg["capacity"] = capacity
    return Message(msg)


def session_get(session_id: int) -> Message:
    return Message({"type": MsgType.SESSION_GET, "id": _new_id(), "session_id": session_id})


def session_list() -> Message:
    return Message({"type": MsgType.SESSION_LIST, "id": _new_id()})


def session_available() -> Message:
    return Message({"type": MsgType.SESSION_AVAILABLE, "id": _new_id()})


def session_by_status(status: str) -> Message:
    return Message({"type": MsgType.SESSION_BY_STATUS, "id": _new_id(), "status": status})


def session_update(
    session_id: int,
    name: str | None = None,
    status: str | None = None,
    capacity: int | None = None,
) -> Message:
    msg: dict = {
        "type":       MsgType.SESSION_UPDATE,
        "id":         _new_id(),
        "session_id": session_id,
    }
    if name is not None:
        msg["name"] = name
    if status is not None:
        msg["status"] = status
    if capacity is not None:
        msg["capacity"] = capacity
    return Message(msg)


def session_delete(session_id: int) -> Message:
    return Message({"type": MsgType.SESSION_DELETE, "id": _new_id(), "session_id": session_id})


# Membership messages
def member_add(session_id: int, user_id: int) -> Message:
    return Message({
        "type":       MsgType.MEMBER_ADD,
        "id":         _new_id(),
        "session_id": session_id,
        "user_id":    user_id,
    })


def member_remove(session_id: int, user_id: int) -> Message:
    return Message({
        "type":       MsgType.MEMBER_REMOVE,
        "id":         _new_id(),
        "session_id": session_id,
        "user_id":    user_id,
    })


def member_list(session_id: int) -> Message:
    return Message({"type": MsgType.MEMBER_LIST, "id": _new_id(), "session_id": session_id})


# ─────────────────────────────────────────────────────────────
# Constructors — server → client messages
# ─────────────────────────────────────────────────────────────

def ok(request_id: str, result: Any = None) -> Message:
    msg = Message({"type": MsgType.OK, "id": request_id})
    if result is not None:
        msg["result"] = result
    return msg


def error(
    request_id: str | None,
    code: str,
    message: str,
    details: dict | None = None,
) -> Message:
    msg = Message({
        "type":    MsgType.ERROR,
        "id":      request_id,
        "code":    code,
        "message": message,
    })
    if details:
        msg["details"] = details
    return msg


def welcome(
    connection_id: str,
    request_id: str,
    server_version: str = "0.1.0",
) -> Message:
    return Message({
        "type":           MsgType.WELCOME,
        "id":             request_id,
        "connection_id":  connection_id,
        "server_version": server_version,
    })


def pong(request_id: str) -> Message:
    return Message({"type": MsgType.PONG, "id": request_id})


def event(
    event_type: str,
    payload: dict,
    session_id: int | None = None,
    event_id: str | None = None,
) -> Message:
    """Server-push event to all connected clients."""
    return Message({
        "type":       MsgType.EVENT,
        "event_id":   event_id or _new_id(),
        "event_type": event_type,
        "session_id": session_id,
        "payload":    payload,
    })
