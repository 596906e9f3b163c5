"""
ludo-lobby vocabulary.

Capacity bounds, the default status label, and the input validators the
service runs before any transaction opens.
"""

from __future__ import annotations

from typing import Any

from ludo_lobby.core.errors import ValidationError


# ─────────────────────────────────────────────────────────────
# Session vocabulary
# ─────────────────────────────────────────────────────────────

MIN_CAPACITY     = 2
MAX_CAPACITY     = 4
DEFAULT_CAPACITY = 4

# Status is a free label. Only the default is fixed.
DEFAULT_STATUS = "waiting"

NAME_MAX_LENGTH   = 256
STATUS_MAX_LENGTH = 64


# ─────────────────────────────────────────────────────────────
# Validators
# ─────────────────────────────────────────────────────────────

def validate_capacity(value: Any) -> int:
    """Return value if it is an integer in [MIN_CAPACITY, MAX_CAPACITY].

    bool is rejected even though it subclasses int.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            "capacity",
            f"capacity must be an integer between {MIN_CAPACITY} and {MAX_CAPACITY}",
        )
    if not MIN_CAPACITY <= value <= MAX_CAPACITY:
        raise ValidationError(
            "capacity",
            f"capacity must be an integer between {MIN_CAPACITY} and {MAX_CAPACITY}",
        )
    return value


def validate_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name", "name is required")
    if len(value) > NAME_MAX_LENGTH:
        raise ValidationError("name", f"name must be at most {NAME_MAX_LENGTH} characters")
    return value


def validate_status(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("status", "status must be a non-empty string")
    if len(value) > STATUS_MAX_LENGTH:
        raise ValidationError("status", f"status must be at most {STATUS_MAX_LENGTH} characters")
    return value


def validate_id(value: Any, field: str = "id") -> int:
    """Accept a positive int, or a string of digits (ids arrive from JSON paths)."""
    if isinstance(value, bool):
        raise ValidationError(field, f"Invalid {field}")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(field, f"Invalid {field}")
    return value
