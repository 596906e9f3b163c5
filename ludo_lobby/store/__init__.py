"""
ludo-lobby persistence layer.

The store package manages all database access. Nothing outside this
package writes SQL directly.

    from ludo_lobby.store import Store, MembershipCoordinator
    from ludo_lobby.store.repo import SessionRepo, UserRepo, MembershipQuery

The server holds one Store and opens a transaction per request.
Clients never access the store directly — they talk to the server
via the socket protocol.
"""

from ludo_lobby.store.membership import MembershipCoordinator
from ludo_lobby.store.repo import MembershipQuery, SessionRepo, UserRepo
from ludo_lobby.store.session import (
    Store,
    get_db_url,
    get_lock_timeout_ms,
    get_sync_db_url,
)

__all__ = [
    "Store", "MembershipCoordinator",
    "SessionRepo", "UserRepo", "MembershipQuery",
    "get_db_url", "get_sync_db_url", "get_lock_timeout_ms",
]
