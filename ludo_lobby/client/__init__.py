"""
ludo-lobby client.

    AsyncClient  — async/await API over the lobby WebSocket protocol
"""

from ludo_lobby.client.async_client import (
    AsyncClient,
    ClientError,
    ConnectionError,
    ServerError,
    TimeoutError,
)

__all__ = [
    "AsyncClient",
    "ClientError", "ServerError", "ConnectionError", "TimeoutError",
]
