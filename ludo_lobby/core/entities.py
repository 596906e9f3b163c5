"""
ludo-lobby value objects.

These are what the store hands back to the rest of the system. They are
plain snapshots: mutating one does not touch the database. The store
builds them from DB rows (store/repo.py) and the router serializes them
with to_dict().
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Session:
    """A joinable lobby with bounded capacity.

    occupancy is the denormalized membership count. Only the membership
    coordinator writes it; every other path reads it.
    """
    id:         int
    name:       str
    status:     str
    capacity:   int
    occupancy:  int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_full(self) -> bool:
        return self.occupancy >= self.capacity

    @property
    def open_slots(self) -> int:
        return max(0, self.capacity - self.occupancy)

    def to_dict(self) -> dict:
        return {
            "id":         self.id,
            "name":       self.name,
            "status":     self.status,
            "capacity":   self.capacity,
            "occupancy":  self.occupancy,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class UserSummary:
    """The display view of a user, as listed in a session."""
    id:         int
    name:       str
    email:      Optional[str] = None
    status:     bool = True
    is_guest:   bool = False
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id":         self.id,
            "name":       self.name,
            "email":      self.email,
            "status":     self.status,
            "is_guest":   self.is_guest,
            "created_at": _iso(self.created_at),
        }
