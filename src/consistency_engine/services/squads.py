"""Squad membership, ranking and score recomputation."""

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from consistency_engine.domain.errors import ErrorKind, OperationResult, StorageError
from consistency_engine.domain.metrics import ConsistencyMetrics
from consistency_engine.domain.squads import MAX_SQUAD_MEMBERS, Squad, SquadMember
from consistency_engine.services.metrics import MetricsService

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 5


class SquadRepository(Protocol):
    """Persistence interface for squads and their members."""

    def get_squad(self, squad_id: UUID) -> Squad | None:
        """Return a squad with members ordered by join time."""

    def create_squad(self, squad: Squad) -> Squad:
        """Persist a new squad with its initial members."""

    def save_squad(self, squad: Squad, expected_version: int) -> bool:
        """Write membership changes if the stored version still matches.

        Existing member rows keep their stored score and streak. Returns
        False without writing anything when the version has moved on.
        """

    def update_member_stats(
        self, squad_id: UUID, user_id: UUID, consistency_score: int, streak: int
    ) -> bool:
        """Overwrite one member's score and streak; False if the row is gone."""

    def list_squad_ids(self, user_id: UUID) -> set[UUID]:
        """Return ids of every squad the user belongs to."""


def can_join(
    squad: Squad, user_id: UUID, max_members: int = MAX_SQUAD_MEMBERS
) -> OperationResult[None]:
    """Check whether a user may join a squad."""
    if squad.member(user_id) is not None:
        return OperationResult.failure(
            ErrorKind.DUPLICATE_MEMBERSHIP, "Already a member of this squad"
        )
    if len(squad.members) >= max_members:
        return OperationResult.failure(
            ErrorKind.CAPACITY_EXCEEDED, f"Squad is full (max {max_members} members)"
        )
    return OperationResult.success()


def rank_members(squad: Squad) -> list[SquadMember]:
    """Order members by score, earlier joiners first on ties."""
    return sorted(
        squad.members,
        key=lambda member: (-member.consistency_score, member.joined_at),
    )


def member_rank(squad: Squad, user_id: UUID) -> int | None:
    """Return a 1-based rank, or None when the user is not a member."""
    for position, member in enumerate(rank_members(squad), start=1):
        if member.user_id == user_id:
            return position
    return None


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SquadService:
    """Application service for squads."""

    repository: SquadRepository
    metrics_service: MetricsService
    max_members: int = MAX_SQUAD_MEMBERS
    recompute_workers: int = 4
    clock: Callable[[], datetime] = _utc_now

    def create_squad(
        self, owner_id: UUID, username: str, avatar_url: str | None = None
    ) -> Squad:
        """Create a squad with the owner as its first member."""
        now = self.clock()
        owner = self._new_member(owner_id, username, avatar_url, now)
        squad = self.repository.create_squad(
            Squad(
                id=uuid4(),
                owner_id=owner_id,
                members=(owner,),
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Created squad %s for owner %s", squad.id, owner_id)
        return squad

    def get_squad(self, squad_id: UUID) -> Squad | None:
        """Return a squad by id."""
        return self.repository.get_squad(squad_id)

    def can_join(self, squad_id: UUID, user_id: UUID) -> OperationResult[None]:
        """Check whether a user may join a stored squad."""
        squad = self.repository.get_squad(squad_id)
        if squad is None:
            return OperationResult.failure(ErrorKind.NOT_FOUND, "Squad not found")
        return can_join(squad, user_id, self.max_members)

    def join_squad(
        self,
        squad_id: UUID,
        user_id: UUID,
        username: str,
        avatar_url: str | None = None,
    ) -> OperationResult[SquadMember]:
        """Add a member, re-checking capacity against the latest squad state."""
        member: SquadMember | None = None
        for _ in range(MAX_WRITE_ATTEMPTS):
            squad = self.repository.get_squad(squad_id)
            if squad is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, "Squad not found")
            check = can_join(squad, user_id, self.max_members)
            if not check.ok:
                return OperationResult.failure(check.error, check.reason or "")
            now = self.clock()
            if member is None:
                member = self._new_member(user_id, username, avatar_url, now)
            updated = replace(squad, members=(*squad.members, member), updated_at=now)
            if self.repository.save_squad(updated, expected_version=squad.version):
                logger.info("User %s joined squad %s", user_id, squad_id)
                return OperationResult.success(member)
            logger.info("Squad %s changed during join, retrying", squad_id)
        raise StorageError(f"Squad {squad_id} is busy, try again")

    def leave_squad(self, squad_id: UUID, user_id: UUID) -> OperationResult[None]:
        """Remove a member; succeeds when the user is already gone."""
        for _ in range(MAX_WRITE_ATTEMPTS):
            squad = self.repository.get_squad(squad_id)
            if squad is None:
                return OperationResult.failure(ErrorKind.NOT_FOUND, "Squad not found")
            if squad.member(user_id) is None:
                return OperationResult.success()
            remaining = tuple(m for m in squad.members if m.user_id != user_id)
            updated = replace(squad, members=remaining, updated_at=self.clock())
            if self.repository.save_squad(updated, expected_version=squad.version):
                logger.info("User %s left squad %s", user_id, squad_id)
                return OperationResult.success()
            logger.info("Squad %s changed during leave, retrying", squad_id)
        raise StorageError(f"Squad {squad_id} is busy, try again")

    def ranked_members(self, squad_id: UUID) -> list[SquadMember] | None:
        """Return ranked members, or None when the squad does not exist."""
        squad = self.repository.get_squad(squad_id)
        if squad is None:
            return None
        return rank_members(squad)

    def rank(self, squad_id: UUID, user_id: UUID) -> int | None:
        """Return a member's 1-based rank, or None if not found."""
        squad = self.repository.get_squad(squad_id)
        if squad is None:
            return None
        return member_rank(squad, user_id)

    def member_metrics(
        self, squad_id: UUID, user_id: UUID
    ) -> ConsistencyMetrics | None:
        """Return fresh metrics for a member with their squad rank filled in."""
        squad = self.repository.get_squad(squad_id)
        if squad is None or squad.member(user_id) is None:
            return None
        metrics = self.metrics_service.compute_metrics(user_id)
        return replace(metrics, rank=member_rank(squad, user_id))

    def recompute_all(self, squad_id: UUID) -> int | None:
        """Refresh every member's score and streak; return rows updated."""
        squad = self.repository.get_squad(squad_id)
        if squad is None:
            return None
        if not squad.members:
            return 0
        workers = max(1, min(self.recompute_workers, len(squad.members)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(
                executor.map(
                    lambda member: self._recompute_member(squad_id, member.user_id),
                    squad.members,
                )
            )
        updated = sum(results)
        logger.info(
            "Recomputed %s of %s members in squad %s",
            updated,
            len(squad.members),
            squad_id,
        )
        return updated

    def _recompute_member(self, squad_id: UUID, user_id: UUID) -> bool:
        metrics = self.metrics_service.compute_metrics(user_id)
        return self.repository.update_member_stats(
            squad_id,
            user_id,
            consistency_score=metrics.consistency_score,
            streak=metrics.current_streak,
        )

    def _new_member(
        self, user_id: UUID, username: str, avatar_url: str | None, now: datetime
    ) -> SquadMember:
        metrics = self.metrics_service.compute_metrics(user_id)
        return SquadMember(
            user_id=user_id,
            username=username,
            avatar_url=avatar_url,
            consistency_score=metrics.consistency_score,
            streak=metrics.current_streak,
            joined_at=now,
        )
