"""Domain models for streak milestones."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Milestone:
    """A named streak threshold."""

    threshold_days: int
    name: str
    title: str
    icon: str


@dataclass(frozen=True)
class MilestoneStatus:
    """A milestone and whether it has been reached."""

    milestone: Milestone
    achieved: bool


@dataclass(frozen=True)
class MilestoneProgress:
    """Milestone statuses with the next target."""

    milestones: list[MilestoneStatus]
    next_milestone: Milestone
    days_until_next: int


MILESTONES: tuple[Milestone, ...] = (
    Milestone(threshold_days=3, name="Starter", title="3-Day Starter", icon="🌱"),
    Milestone(threshold_days=7, name="Warrior", title="7-Day Warrior", icon="🛡️"),
    Milestone(threshold_days=14, name="Spartan", title="14-Day Spartan", icon="⚔️"),
    Milestone(threshold_days=30, name="Titan", title="30-Day Titan", icon="🏛️"),
    Milestone(threshold_days=60, name="Champion", title="60-Day Champion", icon="🏆"),
    Milestone(threshold_days=100, name="Legend", title="100-Day Legend", icon="👑"),
)
