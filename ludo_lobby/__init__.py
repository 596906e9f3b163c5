"""
ludo-lobby: multiplayer lobby service.

Tracks game sessions and the players joined to them, and keeps each
session's occupancy within its capacity under concurrent joins and
leaves. All coordination happens through the relational store.

    ludo_lobby.core     — value objects, validation, error taxonomy
    ludo_lobby.store    — SQLAlchemy models, repositories, coordinator
    ludo_lobby.service  — LobbyService, the operations callers use
    ludo_lobby.server   — WebSocket boundary (protocol, router, app)
    ludo_lobby.client   — AsyncClient for the WebSocket protocol
"""

__version__ = "0.1.0"
