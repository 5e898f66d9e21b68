"""Domain models for streak freezes."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID


@dataclass(frozen=True)
class StreakFreeze:
    """A freeze that can absorb missed days without breaking a streak."""

    id: UUID
    user_id: UUID
    days_remaining: int
    activated_at: datetime
    expires_at: datetime

    def is_active(self, now: datetime) -> bool:
        """Return True when the freeze can still cover a missed day."""
        return self.days_remaining > 0 and self.expires_at > now


@dataclass(frozen=True)
class FreezeConsumption:
    """Record of a freeze unit spent to cover one missed day."""

    freeze_id: UUID
    covered_day: date
