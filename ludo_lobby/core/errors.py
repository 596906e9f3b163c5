"""
ludo-lobby error taxonomy.

Every failure the core reports is a LobbyError subclass. The boundary
layer (server/router.py) maps each class to a wire error code; nothing
in the core knows about wire codes.

    ValidationError      malformed input, raised before any transaction
    NotFoundError        session, user, or membership absent
    ConflictError        state rejects the request (full, duplicate, ...)
    TransientStoreError  lock timeout / lost connection — safe to retry
    OccupancyDriftError  the occupancy counter disagrees with membership rows
"""

from __future__ import annotations


class LobbyError(Exception):
    """Base class for all ludo-lobby errors."""


class ValidationError(LobbyError, ValueError):
    """Input failed validation. No transaction was opened."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class NotFoundError(LobbyError, LookupError):
    """A session, user, or membership row does not exist.

    reason is one of NotFoundError.SESSION, USER, NOT_A_MEMBER.
    """

    SESSION      = "session"
    USER         = "user"
    NOT_A_MEMBER = "not a member"

    _MESSAGES = {
        SESSION:      "Session not found",
        USER:         "User not found",
        NOT_A_MEMBER: "User is not in this session",
    }

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or self._MESSAGES.get(reason, f"{reason} not found"))


class ConflictError(LobbyError):
    """The request is well formed but the current state rejects it.

    Raised while the session row is locked; the transaction has been
    rolled back by the time the caller sees it.
    """

    ALREADY_MEMBER     = "already a member"
    SESSION_FULL       = "session full"
    CAPACITY_TOO_SMALL = "capacity below occupancy"

    _MESSAGES = {
        ALREADY_MEMBER:     "User already in session",
        SESSION_FULL:       "Session is full",
        CAPACITY_TOO_SMALL: "Capacity cannot be lower than the current number of players",
    }

    def __init__(self, reason: str, message: str | None = None):
        self.reason = reason
        super().__init__(message or self._MESSAGES.get(reason, reason))


class TransientStoreError(LobbyError):
    """The store failed in a way that left no partial state behind.

    Lock-wait timeouts, serialization failures, deadlocks and dropped
    connections land here. Retrying the whole operation is safe.
    """


class OccupancyDriftError(LobbyError):
    """A session's occupancy counter no longer matches its membership rows.

    This indicates a bug or an out-of-band write, not a user error.
    """

    def __init__(self, session_id: int, occupancy: int):
        self.session_id = session_id
        self.occupancy  = occupancy
        super().__init__(
            f"Session {session_id} has occupancy {occupancy} but a membership "
            f"row was just removed; refusing to write a negative count."
        )
