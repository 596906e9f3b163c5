"""
Classify driver errors for the store layer.

The store raises TransientStoreError for failures that left nothing
behind and can be retried from the outside. Everything else propagates
as the original SQLAlchemy error.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from ludo_lobby.core.errors import TransientStoreError

# Postgres SQLSTATE codes that mean "try again"
TRANSIENT_SQLSTATES = frozenset({
    "55P03",   # lock_not_available (lock_timeout expired)
    "40001",   # serialization_failure
    "40P01",   # deadlock_detected
    "57014",   # query_canceled (statement_timeout)
    "57P01",   # admin_shutdown
})

# SQLite reports lock contention through the message only
_SQLITE_TRANSIENT_MESSAGES = ("database is locked", "database table is locked")


def sqlstate_of(exc: DBAPIError) -> str | None:
    """Return the SQLSTATE behind a wrapped driver error, if any.

    asyncpg exposes it as .sqlstate (on the adapted error or its cause),
    psycopg2 as .pgcode.
    """
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_transient(exc: DBAPIError) -> bool:
    if exc.connection_invalidated:
        return True
    code = sqlstate_of(exc)
    if code is not None:
        return code in TRANSIENT_SQLSTATES or code.startswith("08")
    if isinstance(exc, (OperationalError, InterfaceError)):
        message = str(exc.orig).lower()
        if any(m in message for m in _SQLITE_TRANSIENT_MESSAGES):
            return True
        return isinstance(exc, InterfaceError)
    return False


def translate(exc: Exception) -> Exception:
    """Map a store-level failure to the exception callers should see.

    Transient driver errors and raw socket errors become
    TransientStoreError; anything else is returned unchanged.
    """
    if isinstance(exc, DBAPIError) and is_transient(exc):
        return TransientStoreError(f"Store temporarily unavailable: {exc.orig}")
    if isinstance(exc, OSError):
        return TransientStoreError(f"Store temporarily unavailable: {exc}")
    return exc
