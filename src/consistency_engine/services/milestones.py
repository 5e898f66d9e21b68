"""Milestone evaluation against a user's streaks."""

from collections.abc import Sequence

from consistency_engine.domain.errors import InvalidInputError
from consistency_engine.domain.milestones import (
    MILESTONES,
    Milestone,
    MilestoneProgress,
    MilestoneStatus,
)


def evaluate_milestones(
    longest_streak: int,
    current_streak: int,
    table: Sequence[Milestone] = MILESTONES,
) -> MilestoneProgress:
    """Mark achieved milestones and find the next one to chase."""
    if not table:
        raise InvalidInputError("Milestone table must not be empty")
    ordered = sorted(table, key=lambda milestone: milestone.threshold_days)
    statuses = [
        MilestoneStatus(
            milestone=milestone,
            achieved=longest_streak >= milestone.threshold_days,
        )
        for milestone in ordered
    ]
    next_milestone = next(
        (status.milestone for status in statuses if not status.achieved),
        ordered[-1],
    )
    return MilestoneProgress(
        milestones=statuses,
        next_milestone=next_milestone,
        days_until_next=max(0, next_milestone.threshold_days - current_streak),
    )
