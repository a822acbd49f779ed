"""Models for the bounded fast store."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class QuotaEntry:
    """A message id held in the bounded fast store."""

    message_id: str
    inserted_at: datetime


@dataclass(frozen=True)
class InsertResult:
    """Result of a fast store insert attempt."""

    inserted: bool  # False when the key was already present
    evicted_count: int


@dataclass(frozen=True)
class FastStoreUsage:
    """Occupancy of the fast store relative to its capacity."""

    size: int
    capacity: int
    percent_used: int
    near_limit: bool  # Within the safety margin of capacity
    at_limit: bool
