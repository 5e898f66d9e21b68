"""Domain models for activity logs."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from uuid import UUID


@dataclass(frozen=True)
class ActivityLogEntry:
    """A single trackable action logged by a user."""

    user_id: UUID
    occurred_at: datetime


class DayStatus(StrEnum):
    """Calendar status of a single day."""

    HIT = "hit"
    FROZEN = "frozen"
    MISS = "miss"
    PENDING = "pending"


@dataclass(frozen=True)
class DayEntry:
    """Status of one day in a user's history."""

    day: date
    status: DayStatus
    log_count: int
