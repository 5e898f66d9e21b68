"""Request and response models for the HTTP API."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from consistency_engine.domain.reactions import ReactionContext, ReactionType


class CreateSquadRequest(BaseModel):
    """Payload for creating a squad."""

    owner_id: UUID
    username: str = Field(min_length=1)
    avatar_url: str | None = None


class JoinSquadRequest(BaseModel):
    """Payload for joining a squad."""

    user_id: UUID
    username: str = Field(min_length=1)
    avatar_url: str | None = None


class ReactionRequest(BaseModel):
    """Payload for reacting to a squad member's item."""

    user_id: UUID
    target_user_id: UUID
    target_id: str = Field(min_length=1)
    type: ReactionType
    context: ReactionContext


class FreezePurchaseRequest(BaseModel):
    """Payload for buying a streak freeze."""

    days: int = Field(default=1, ge=1)


class MetricsResponse(BaseModel):
    """Consistency metrics for a user."""

    user_id: UUID
    logs_this_week: int
    logs_last_week: int
    current_streak: int
    longest_streak: int
    consistency_score: int
    rank: int | None = None


class MemberResponse(BaseModel):
    """Squad member view."""

    user_id: UUID
    username: str
    avatar_url: str | None = None
    consistency_score: int
    streak: int
    joined_at: datetime
    rank: int | None = None


class SquadResponse(BaseModel):
    """Squad with members in join order."""

    id: UUID
    owner_id: UUID
    members: list[MemberResponse]
    created_at: datetime
    updated_at: datetime


class ReactionResponse(BaseModel):
    """Stored reaction."""

    id: UUID
    user_id: UUID
    target_user_id: UUID
    type: ReactionType
    context: ReactionContext
    target_id: str
    timestamp: datetime


class ReactResponse(BaseModel):
    """Result of a react call."""

    action: str
    reaction: ReactionResponse | None = None


class MilestoneResponse(BaseModel):
    """Milestone with achievement flag."""

    threshold_days: int
    name: str
    title: str
    icon: str
    achieved: bool


class MilestonesResponse(BaseModel):
    """Milestone progress for a user."""

    milestones: list[MilestoneResponse]
    next_milestone: MilestoneResponse
    days_until_next: int


class DayResponse(BaseModel):
    """Status of one day in the streak calendar."""

    day: date
    status: str
    log_count: int


class FreezeResponse(BaseModel):
    """Active streak freeze."""

    id: UUID
    days_remaining: int
    activated_at: datetime
    expires_at: datetime
