"""Consistency score formula."""

import math

from consistency_engine.domain.errors import InvalidInputError

STREAK_WEIGHT = 40
WEEKLY_WEIGHT = 30
FREQUENCY_WEIGHT = 20
LONGEST_STREAK_WEIGHT = 10

STREAK_TARGET_DAYS = 30
WEEKLY_TARGET_LOGS = 7
FREQUENCY_TARGET_LOGS = 30
LONGEST_STREAK_TARGET_DAYS = 50

MAX_SCORE = 100


def consistency_score(
    *,
    logs_this_week: int,
    current_streak: int,
    longest_streak: int,
    logs_trailing_30_days: int,
    logs_last_week: int = 0,
) -> int:
    """Return a 0-100 score from streaks and recent log counts.

    ``logs_last_week`` is accepted for completeness but does not affect
    the score.
    """
    values = (
        logs_this_week,
        current_streak,
        longest_streak,
        logs_trailing_30_days,
        logs_last_week,
    )
    if any(value < 0 for value in values):
        raise InvalidInputError("Score inputs must be non-negative")
    if logs_trailing_30_days == 0:
        return 0

    total = (
        _component(current_streak, STREAK_TARGET_DAYS, STREAK_WEIGHT)
        + _component(logs_this_week, WEEKLY_TARGET_LOGS, WEEKLY_WEIGHT)
        + _component(logs_trailing_30_days, FREQUENCY_TARGET_LOGS, FREQUENCY_WEIGHT)
        + _component(longest_streak, LONGEST_STREAK_TARGET_DAYS, LONGEST_STREAK_WEIGHT)
    )
    # Round half up rather than to even.
    return max(0, min(MAX_SCORE, math.floor(total + 0.5)))


def _component(value: int, target: int, weight: int) -> float:
    return min(value / target, 1) * weight
