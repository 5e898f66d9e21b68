"""Domain models for squads."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

MAX_SQUAD_MEMBERS = 5


@dataclass(frozen=True)
class SquadMember:
    """A user's membership row within a squad."""

    user_id: UUID
    username: str
    avatar_url: str | None
    consistency_score: int
    streak: int
    joined_at: datetime


@dataclass(frozen=True)
class Squad:
    """A small accountability group.

    ``version`` increases on every membership change and guards
    concurrent joins and leaves.
    """

    id: UUID
    owner_id: UUID
    members: tuple[SquadMember, ...]
    created_at: datetime
    updated_at: datetime
    version: int = 0

    def member(self, user_id: UUID) -> SquadMember | None:
        """Return the member row for a user, if present."""
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None
