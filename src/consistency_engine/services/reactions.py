"""Squad-scoped reactions with one reaction per user and target."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from consistency_engine.domain.errors import ErrorKind, OperationResult, StorageError
from consistency_engine.domain.reactions import (
    Reaction,
    ReactionAction,
    ReactionContext,
    ReactionOutcome,
    ReactionType,
)
from consistency_engine.services.rewards import ReactionRewardService
from consistency_engine.services.squads import SquadRepository

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


class ReactionRepository(Protocol):
    """Persistence interface for reactions."""

    def get_reaction(self, user_id: UUID, target_id: str) -> Reaction | None:
        """Return the user's reaction to a target, if any."""

    def create_reaction(self, reaction: Reaction) -> bool:
        """Insert a reaction; False if the user already reacted to the target."""

    def replace_reaction(self, reaction: Reaction, expected_type: ReactionType) -> bool:
        """Update a reaction in place if its stored type is still expected."""

    def delete_reaction(self, reaction_id: UUID, expected_type: ReactionType) -> bool:
        """Delete a reaction if its stored type is still expected."""

    def list_reactions(self, target_id: str) -> list[Reaction]:
        """Return reactions to a target, newest first."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ReactionService:
    """Application service for squad reactions."""

    repository: ReactionRepository
    squad_repository: SquadRepository
    reward_service: ReactionRewardService | None = None
    clock: Callable[[], datetime] = _utc_now

    def are_in_same_squad(self, user_a: UUID, user_b: UUID) -> bool:
        """Return True when both users share at least one squad."""
        squads_a = self.squad_repository.list_squad_ids(user_a)
        if not squads_a:
            return False
        return bool(squads_a & self.squad_repository.list_squad_ids(user_b))

    def react(  # noqa: PLR0913
        self,
        user_id: UUID,
        target_user_id: UUID,
        target_id: str,
        reaction_type: ReactionType | str,
        context: ReactionContext | str,
    ) -> OperationResult[ReactionOutcome]:
        """Create, replace or toggle off the user's reaction to a target."""
        try:
            reaction_type = ReactionType(reaction_type)
            context = ReactionContext(context)
        except ValueError:
            return OperationResult.failure(
                ErrorKind.INVALID_INPUT, "Unknown reaction type or context"
            )
        if not target_id:
            return OperationResult.failure(ErrorKind.INVALID_INPUT, "Missing target id")
        if not self.are_in_same_squad(user_id, target_user_id):
            return OperationResult.failure(
                ErrorKind.NOT_AUTHORIZED, "Can only react to squad members"
            )

        for _ in range(MAX_WRITE_ATTEMPTS):
            now = self.clock()
            existing = self.repository.get_reaction(user_id, target_id)
            if existing is None:
                reaction = Reaction(
                    id=uuid4(),
                    user_id=user_id,
                    target_user_id=target_user_id,
                    type=reaction_type,
                    context=context,
                    target_id=target_id,
                    timestamp=now,
                )
                if self.repository.create_reaction(reaction):
                    self._reward(reaction)
                    return _outcome(ReactionAction.CREATED, reaction)
            elif existing.type == reaction_type:
                if self.repository.delete_reaction(
                    existing.id, expected_type=existing.type
                ):
                    return _outcome(ReactionAction.REMOVED, None)
            else:
                updated = replace(
                    existing,
                    type=reaction_type,
                    context=context,
                    target_user_id=target_user_id,
                    timestamp=now,
                )
                if self.repository.replace_reaction(
                    updated, expected_type=existing.type
                ):
                    return _outcome(ReactionAction.REPLACED, updated)
            logger.info(
                "Reaction by %s on %s changed concurrently, retrying",
                user_id,
                target_id,
            )
        raise StorageError(f"Reaction on {target_id} is busy, try again")

    def reactions_for(self, target_id: str) -> list[Reaction]:
        """Return reactions to a target, most recent first."""
        return sorted(
            self.repository.list_reactions(target_id),
            key=lambda reaction: reaction.timestamp,
            reverse=True,
        )

    def _reward(self, reaction: Reaction) -> None:
        """Reward a new reaction, removing it again if the reward fails."""
        if self.reward_service is None or reaction.user_id == reaction.target_user_id:
            return
        try:
            self.reward_service.award(reaction.target_user_id)
        except StorageError:
            logger.warning(
                "Reward for reaction %s failed, removing the reaction", reaction.id
            )
            self.repository.delete_reaction(reaction.id, expected_type=reaction.type)
            raise


def _outcome(
    action: ReactionAction, reaction: Reaction | None
) -> OperationResult[ReactionOutcome]:
    return OperationResult.success(ReactionOutcome(action=action, reaction=reaction))
