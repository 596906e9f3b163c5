"""
ludo-lobby WebSocket boundary.

    protocol     — wire messages, types, error codes
    router       — message → LobbyService call, error → code mapping
    connections  — live connections and event broadcast
    app          — LobbyServer lifecycle and main()
"""

from ludo_lobby.server.app import LobbyServer, main

__all__ = ["LobbyServer", "main"]
