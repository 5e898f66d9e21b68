"""Domain models for streaks and consistency metrics."""

from dataclasses import dataclass
from uuid import UUID

from consistency_engine.domain.freezes import FreezeConsumption, StreakFreeze


@dataclass(frozen=True)
class StreakResult:
    """Streak lengths plus the freeze state after bridging gaps."""

    current_streak: int
    longest_streak: int
    freezes: tuple[StreakFreeze, ...] = ()
    consumptions: tuple[FreezeConsumption, ...] = ()


@dataclass(frozen=True)
class ConsistencyMetrics:
    """Derived consistency numbers for a user."""

    user_id: UUID
    logs_this_week: int
    logs_last_week: int
    current_streak: int
    longest_streak: int
    consistency_score: int
    rank: int | None = None
