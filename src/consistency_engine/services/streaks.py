"""Streak calculation over deduplicated activity days."""

from collections.abc import Collection, Iterable
from datetime import UTC, date, datetime, timedelta, tzinfo

from consistency_engine.domain.errors import InvalidInputError
from consistency_engine.domain.freezes import FreezeConsumption, StreakFreeze
from consistency_engine.domain.metrics import StreakResult
from consistency_engine.services.freezes import consume_one, next_to_consume

ONE_DAY = timedelta(days=1)


def activity_days(timestamps: Iterable[datetime], tz: tzinfo = UTC) -> set[date]:
    """Bucket timestamps into distinct calendar days in ``tz``."""
    days: set[date] = set()
    for timestamp in timestamps:
        if timestamp.tzinfo is None:
            raise InvalidInputError("Activity timestamps must be timezone-aware")
        days.add(timestamp.astimezone(tz).date())
    return days


class _FreezeBridge:
    """Decides whether a single missed day can be bridged."""

    def __init__(
        self,
        freezes: Iterable[StreakFreeze],
        covered_days: Collection[date],
        now: datetime,
    ) -> None:
        self.freezes = list(freezes)
        self.covered = set(covered_days)
        self.consumptions: list[FreezeConsumption] = []
        self.now = now

    def is_covered(self, day: date) -> bool:
        return day in self.covered

    def bridge(self, day: date) -> bool:
        """Bridge ``day``, spending a freeze unit unless already covered."""
        if day in self.covered:
            return True
        freeze = next_to_consume(self.freezes, self.now)
        if freeze is None:
            return False
        self.freezes = consume_one(self.freezes, self.now)
        self.covered.add(day)
        self.consumptions.append(
            FreezeConsumption(freeze_id=freeze.id, covered_day=day)
        )
        return True


def calculate_streaks(
    timestamps: Iterable[datetime],
    freezes: Iterable[StreakFreeze] = (),
    *,
    now: datetime,
    tz: tzinfo = UTC,
    covered_days: Collection[date] = frozenset(),
) -> StreakResult:
    """Return current and longest streaks for a user's activity.

    A single missed day between two active days is bridged when it is in
    ``covered_days`` or when an active freeze can pay for it. New freeze
    units are only spent on the current run; the returned result lists
    the freezes left afterwards and the consumptions to persist.
    """
    today = now.astimezone(tz).date()
    days = {day for day in activity_days(timestamps, tz) if day <= today}
    bridge = _FreezeBridge(freezes, covered_days, now)
    if not days:
        return StreakResult(
            current_streak=0, longest_streak=0, freezes=tuple(bridge.freezes)
        )

    current = _current_run(sorted(days, reverse=True), today, bridge)
    longest = max(_longest_run(sorted(days), bridge), current)
    return StreakResult(
        current_streak=current,
        longest_streak=longest,
        freezes=tuple(bridge.freezes),
        consumptions=tuple(bridge.consumptions),
    )


def _current_run(descending: list[date], today: date, bridge: _FreezeBridge) -> int:
    latest = descending[0]
    lag = (today - latest).days
    # Today is not over yet, so a run ending yesterday is still alive.
    if lag > 2 or (lag == 2 and not bridge.bridge(today - ONE_DAY)):
        return 0

    length = 1
    previous = latest
    for day in descending[1:]:
        gap = (previous - day).days
        if gap == 1 or (gap == 2 and bridge.bridge(previous - ONE_DAY)):
            length += 1
            previous = day
            continue
        break
    return length


def _longest_run(ascending: list[date], bridge: _FreezeBridge) -> int:
    longest = 0
    run = 0
    previous: date | None = None
    for day in ascending:
        if previous is not None and _continues(previous, day, bridge):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day
    return longest


def _continues(previous: date, day: date, bridge: _FreezeBridge) -> bool:
    gap = (day - previous).days
    return gap == 1 or (gap == 2 and bridge.is_covered(day - ONE_DAY))
