"""Domain models for squad reactions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class ReactionType(StrEnum):
    """Allowed reaction emoji."""

    FIRE = "fire"
    MUSCLE = "muscle"
    CLAP = "clap"
    BOLT = "bolt"
    TARGET = "target"
    EYES = "eyes"


class ReactionContext(StrEnum):
    """What kind of item a reaction points at."""

    LOG = "log"
    WORKOUT = "workout"
    PHOTO = "photo"
    STREAK = "streak"


class ReactionAction(StrEnum):
    """What a react call did."""

    CREATED = "created"
    REPLACED = "replaced"
    REMOVED = "removed"


@dataclass(frozen=True)
class Reaction:
    """A user's acknowledgement of a squad member's item."""

    id: UUID
    user_id: UUID
    target_user_id: UUID
    type: ReactionType
    context: ReactionContext
    target_id: str
    timestamp: datetime


@dataclass(frozen=True)
class ReactionOutcome:
    """Result of toggling or setting a reaction."""

    action: ReactionAction
    reaction: Reaction | None
