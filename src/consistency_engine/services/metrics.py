"""Consistency metrics computed from activity logs and freezes."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Protocol
from uuid import UUID
from zoneinfo import ZoneInfo

from consistency_engine.config import resolve_timezone
from consistency_engine.domain.activity import ActivityLogEntry, DayEntry, DayStatus
from consistency_engine.domain.errors import InvalidInputError, StorageError
from consistency_engine.domain.freezes import StreakFreeze
from consistency_engine.domain.metrics import ConsistencyMetrics, StreakResult
from consistency_engine.domain.milestones import MilestoneProgress
from consistency_engine.services.freezes import FreezeRepository
from consistency_engine.services.milestones import evaluate_milestones
from consistency_engine.services.scoring import consistency_score
from consistency_engine.services.streaks import activity_days, calculate_streaks

logger = logging.getLogger(__name__)

SCORING_WINDOW_DAYS = 30
WEEK = timedelta(days=7)
MAX_FREEZE_ATTEMPTS = 3


class ActivityRepository(Protocol):
    """Read interface for the activity log store."""

    def list_activity(
        self, user_id: UUID, since: datetime | None
    ) -> list[ActivityLogEntry]:
        """Return entries at or after ``since``, or all entries when None."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class MetricsService:
    """Service computing streaks, scores and milestones for a user."""

    activity_repository: ActivityRepository
    freeze_repository: FreezeRepository
    timezone_name: str = "UTC"
    clock: Callable[[], datetime] = _utc_now

    def compute_metrics(
        self, user_id: UUID, timezone_name: str | None = None
    ) -> ConsistencyMetrics:
        """Return fresh metrics, spending freezes on gaps in the current run."""
        tz = resolve_timezone(timezone_name or self.timezone_name)
        now = self.clock()
        entries = self.activity_repository.list_activity(user_id, since=None)
        # Reject naive timestamps before comparing or touching the freeze ledger.
        activity_days((entry.occurred_at for entry in entries), tz)
        timestamps = [
            entry.occurred_at for entry in entries if entry.occurred_at <= now
        ]
        streaks = self._settle_streaks(user_id, timestamps, now, tz)

        window_start = now - timedelta(days=SCORING_WINDOW_DAYS)
        recent = [at for at in timestamps if at >= window_start]
        logs_this_week = sum(1 for at in recent if at >= now - WEEK)
        logs_last_week = sum(1 for at in recent if now - 2 * WEEK <= at < now - WEEK)
        score = consistency_score(
            logs_this_week=logs_this_week,
            logs_last_week=logs_last_week,
            current_streak=streaks.current_streak,
            longest_streak=streaks.longest_streak,
            logs_trailing_30_days=len(recent),
        )
        return ConsistencyMetrics(
            user_id=user_id,
            logs_this_week=logs_this_week,
            logs_last_week=logs_last_week,
            current_streak=streaks.current_streak,
            longest_streak=streaks.longest_streak,
            consistency_score=score,
        )

    def get_milestones(
        self, user_id: UUID, timezone_name: str | None = None
    ) -> MilestoneProgress:
        """Return milestone progress for a user."""
        metrics = self.compute_metrics(user_id, timezone_name)
        return evaluate_milestones(metrics.longest_streak, metrics.current_streak)

    def day_history(
        self, user_id: UUID, days: int = 30, timezone_name: str | None = None
    ) -> list[DayEntry]:
        """Return per-day statuses for the last ``days`` days, oldest first."""
        if days < 1:
            raise InvalidInputError("History length must be positive")
        tz = resolve_timezone(timezone_name or self.timezone_name)
        now = self.clock()
        today = now.astimezone(tz).date()
        start = datetime.combine(
            today - timedelta(days=days - 1), datetime.min.time(), tzinfo=tz
        )
        entries = self.activity_repository.list_activity(
            user_id, since=start.astimezone(UTC)
        )
        counts: dict[date, int] = {}
        for entry in entries:
            day = entry.occurred_at.astimezone(tz).date()
            counts[day] = counts.get(day, 0) + 1
        covered = self.freeze_repository.list_covered_days(user_id)

        history = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            log_count = counts.get(day, 0)
            if log_count:
                status = DayStatus.HIT
            elif day in covered:
                status = DayStatus.FROZEN
            elif day == today:
                status = DayStatus.PENDING
            else:
                status = DayStatus.MISS
            history.append(DayEntry(day=day, status=status, log_count=log_count))
        return history

    def _settle_streaks(
        self,
        user_id: UUID,
        timestamps: list[datetime],
        now: datetime,
        tz: ZoneInfo,
    ) -> StreakResult:
        for _ in range(MAX_FREEZE_ATTEMPTS):
            freezes = self.freeze_repository.list_active_freezes(user_id, now)
            covered = self.freeze_repository.list_covered_days(user_id)
            result = calculate_streaks(
                timestamps, freezes, now=now, tz=tz, covered_days=covered
            )
            if self._commit_consumptions(user_id, freezes, result):
                return result
            logger.info(
                "Freeze ledger for %s changed mid-computation, retrying", user_id
            )
        raise StorageError(f"Could not settle streak freezes for {user_id}")

    def _commit_consumptions(
        self, user_id: UUID, freezes: list[StreakFreeze], result: StreakResult
    ) -> bool:
        expected = {freeze.id: freeze.days_remaining for freeze in freezes}
        for consumption in result.consumptions:
            remaining = expected[consumption.freeze_id]
            if not self.freeze_repository.consume_freeze(
                user_id, consumption, expected_remaining=remaining
            ):
                return False
            expected[consumption.freeze_id] = remaining - 1
            logger.info(
                "Freeze %s covered %s for %s",
                consumption.freeze_id,
                consumption.covered_day.isoformat(),
                user_id,
            )
        return True
