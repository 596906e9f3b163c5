"""
ludo-lobby core types.

    from ludo_lobby.core import (
        # Value objects
        Session, UserSummary,
        # Vocabulary
        MIN_CAPACITY, MAX_CAPACITY, DEFAULT_CAPACITY, DEFAULT_STATUS,
        # Errors
        LobbyError, ValidationError, NotFoundError, ConflictError,
        TransientStoreError, OccupancyDriftError,
    )
"""

from ludo_lobby.core.entities import Session, UserSummary
from ludo_lobby.core.errors import (
    ConflictError,
    LobbyError,
    NotFoundError,
    OccupancyDriftError,
    TransientStoreError,
    ValidationError,
)
from ludo_lobby.core.vocabulary import (
    DEFAULT_CAPACITY,
    DEFAULT_STATUS,
    MAX_CAPACITY,
    MIN_CAPACITY,
    validate_capacity,
    validate_id,
    validate_name,
    validate_status,
)

__all__ = [
    # Value objects
    "Session", "UserSummary",
    # Vocabulary
    "MIN_CAPACITY", "MAX_CAPACITY", "DEFAULT_CAPACITY", "DEFAULT_STATUS",
    "validate_capacity", "validate_id", "validate_name", "validate_status",
    # Errors
    "LobbyError", "ValidationError", "NotFoundError", "ConflictError",
    "TransientStoreError", "OccupancyDriftError",
]
