"""Tests for the squad service."""

from dataclasses import dataclass, replace
from datetime import timedelta
from uuid import UUID, uuid4

import pytest

from consistency_engine.domain.errors import ErrorKind, StorageError
from consistency_engine.domain.squads import Squad, SquadMember
from consistency_engine.services.squads import (
    SquadService,
    can_join,
    member_rank,
    rank_members,
)
from tests.conftest import NOW, InMemorySquadRepository, fixed_clock, make_member


def _squad(*members: SquadMember) -> Squad:
    return Squad(
        id=uuid4(),
        owner_id=members[0].user_id if members else uuid4(),
        members=tuple(members),
        created_at=NOW,
        updated_at=NOW,
    )


def test_create_squad_adds_owner_with_metrics(
    squad_service, activity_repository
) -> None:
    owner_id = uuid4()
    activity_repository.add_days_ago(owner_id, 0, 1, 2)

    squad = squad_service.create_squad(owner_id, "owner", "https://img/owner.png")

    assert squad.owner_id == owner_id
    assert len(squad.members) == 1
    owner = squad.members[0]
    assert owner.username == "owner"
    assert owner.avatar_url == "https://img/owner.png"
    assert owner.streak == 3
    assert owner.consistency_score > 0
    assert squad_service.get_squad(squad.id) == squad


def test_can_join_reports_duplicates_and_capacity() -> None:
    members = [make_member(uuid4()) for _ in range(5)]
    full = _squad(*members)

    assert can_join(full, members[0].user_id).error == ErrorKind.DUPLICATE_MEMBERSHIP
    assert can_join(full, uuid4()).error == ErrorKind.CAPACITY_EXCEEDED
    assert can_join(_squad(*members[:4]), uuid4()).ok


def test_join_until_full_then_sixth_fails(squad_service, squad_repository) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")
    for index in range(4):
        result = squad_service.join_squad(squad.id, uuid4(), f"member-{index}")
        assert result.ok

    sixth = uuid4()
    result = squad_service.join_squad(squad.id, sixth, "sixth")

    assert not result.ok
    assert result.error == ErrorKind.CAPACITY_EXCEEDED
    stored = squad_repository.squads[squad.id]
    assert len(stored.members) == 5
    assert stored.member(sixth) is None


def test_join_twice_is_duplicate(squad_service) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")
    user_id = uuid4()
    squad_service.join_squad(squad.id, user_id, "member")

    result = squad_service.join_squad(squad.id, user_id, "member")

    assert result.error == ErrorKind.DUPLICATE_MEMBERSHIP


def test_join_missing_squad_is_not_found(squad_service) -> None:
    result = squad_service.join_squad(uuid4(), uuid4(), "member")

    assert result.error == ErrorKind.NOT_FOUND


def test_service_can_join_checks_stored_squad(squad_service) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")

    assert squad_service.can_join(squad.id, uuid4()).ok
    assert squad_service.can_join(squad.id, squad.owner_id).error == (
        ErrorKind.DUPLICATE_MEMBERSHIP
    )
    assert squad_service.can_join(uuid4(), uuid4()).error == ErrorKind.NOT_FOUND


def test_join_retries_after_version_conflict(squad_service, squad_repository) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")
    squad_repository.conflicts = 2
    user_id = uuid4()

    result = squad_service.join_squad(squad.id, user_id, "member")

    assert result.ok
    assert squad_repository.squads[squad.id].member(user_id) is not None


def test_join_gives_up_after_repeated_conflicts(
    squad_service, squad_repository
) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")
    squad_repository.conflicts = 50

    with pytest.raises(StorageError):
        squad_service.join_squad(squad.id, uuid4(), "member")


@dataclass
class RacingSquadRepository(InMemorySquadRepository):
    """Lets one competing member in just before our write lands."""

    racer: SquadMember | None = None

    def save_squad(self, squad: Squad, expected_version: int) -> bool:
        if self.racer is not None:
            racer, self.racer = self.racer, None
            stored = self.squads[squad.id]
            self.squads[squad.id] = replace(
                stored,
                members=(*stored.members, racer),
                version=stored.version + 1,
            )
            return False
        return super().save_squad(squad, expected_version)


def test_concurrent_join_cannot_exceed_capacity(metrics_service) -> None:
    repository = RacingSquadRepository()
    squad = _squad(*(make_member(uuid4()) for _ in range(4)))
    repository.create_squad(squad)
    repository.racer = make_member(uuid4())
    service = SquadService(
        repository=repository, metrics_service=metrics_service, clock=fixed_clock()
    )

    result = service.join_squad(squad.id, uuid4(), "late")

    assert result.error == ErrorKind.CAPACITY_EXCEEDED
    assert len(repository.squads[squad.id].members) == 5


def test_leave_is_idempotent(squad_service, squad_repository) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")
    user_id = uuid4()
    squad_service.join_squad(squad.id, user_id, "member")

    first = squad_service.leave_squad(squad.id, user_id)
    second = squad_service.leave_squad(squad.id, user_id)

    assert first.ok
    assert second.ok
    assert squad_repository.squads[squad.id].member(user_id) is None
    assert len(squad_repository.squads[squad.id].members) == 1


def test_leave_missing_squad_is_not_found(squad_service) -> None:
    assert squad_service.leave_squad(uuid4(), uuid4()).error == ErrorKind.NOT_FOUND


def test_rank_members_orders_by_score_then_join_time() -> None:
    first, second, third = uuid4(), uuid4(), uuid4()
    squad = _squad(
        make_member(first, score=40, joined_at=NOW),
        make_member(second, score=75, joined_at=NOW + timedelta(minutes=1)),
        make_member(third, score=40, joined_at=NOW - timedelta(minutes=1)),
    )

    ranked = [member.user_id for member in rank_members(squad)]

    assert ranked == [second, third, first]
    assert member_rank(squad, first) == 3
    assert member_rank(squad, uuid4()) is None


def test_service_ranking_views(squad_service, squad_repository) -> None:
    leader, follower = uuid4(), uuid4()
    squad = _squad(make_member(follower, score=10), make_member(leader, score=90))
    squad_repository.create_squad(squad)

    ranked = squad_service.ranked_members(squad.id)

    assert [member.user_id for member in ranked] == [leader, follower]
    assert squad_service.rank(squad.id, leader) == 1
    assert squad_service.rank(squad.id, uuid4()) is None
    assert squad_service.ranked_members(uuid4()) is None
    assert squad_service.rank(uuid4(), leader) is None


def test_member_metrics_fill_in_rank(
    squad_service, squad_repository, activity_repository
) -> None:
    leader, follower = uuid4(), uuid4()
    squad = _squad(make_member(follower, score=10), make_member(leader, score=90))
    squad_repository.create_squad(squad)
    activity_repository.add_days_ago(follower, 0, 1)

    metrics = squad_service.member_metrics(squad.id, follower)

    assert metrics is not None
    assert metrics.rank == 2
    assert metrics.current_streak == 2
    assert squad_service.member_metrics(squad.id, uuid4()) is None


def test_recompute_all_overwrites_scores(
    squad_service, squad_repository, activity_repository
) -> None:
    active, idle = uuid4(), uuid4()
    squad = _squad(make_member(active, score=0), make_member(idle, score=55, streak=9))
    squad_repository.create_squad(squad)
    activity_repository.add_days_ago(active, 0, 1, 2, 3)

    updated = squad_service.recompute_all(squad.id)

    stored = squad_repository.squads[squad.id]
    assert updated == 2
    assert stored.member(active).streak == 4
    assert stored.member(active).consistency_score > 0
    assert stored.member(idle).consistency_score == 0
    assert stored.member(idle).streak == 0


def test_recompute_all_missing_squad(squad_service) -> None:
    assert squad_service.recompute_all(uuid4()) is None


def test_stat_update_never_resurrects_removed_member(
    squad_service, squad_repository
) -> None:
    squad = squad_service.create_squad(uuid4(), "owner")
    user_id = uuid4()
    squad_service.join_squad(squad.id, user_id, "member")
    squad_service.leave_squad(squad.id, user_id)

    written = squad_repository.update_member_stats(squad.id, user_id, 80, 5)

    assert not written
    assert squad_repository.squads[squad.id].member(user_id) is None


def test_join_keeps_existing_member_stats(squad_service, squad_repository) -> None:
    owner_id = uuid4()
    squad = squad_service.create_squad(owner_id, "owner")
    squad_repository.update_member_stats(squad.id, owner_id, 77, 12)

    squad_service.join_squad(squad.id, uuid4(), "member")

    owner = squad_repository.squads[squad.id].member(owner_id)
    assert (owner.consistency_score, owner.streak) == (77, 12)


def _ids(members: tuple[SquadMember, ...]) -> list[UUID]:
    return [member.user_id for member in members]


def test_members_stay_in_join_order(squad_service, squad_repository) -> None:
    owner_id, first, second = uuid4(), uuid4(), uuid4()
    squad = squad_service.create_squad(owner_id, "owner")
    squad_service.join_squad(squad.id, first, "first")
    squad_service.join_squad(squad.id, second, "second")

    assert _ids(squad_repository.squads[squad.id].members) == [owner_id, first, second]
