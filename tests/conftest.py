"""Shared test fixtures."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, timedelta
from uuid import UUID

import pytest

from consistency_engine.config import Settings
from consistency_engine.containers import AppContainer
from consistency_engine.domain.activity import ActivityLogEntry
from consistency_engine.domain.freezes import FreezeConsumption, StreakFreeze
from consistency_engine.domain.reactions import Reaction, ReactionType
from consistency_engine.domain.squads import Squad, SquadMember
from consistency_engine.domain.wallet import CoinTransaction
from consistency_engine.services.freezes import FreezeRepository, FreezeService
from consistency_engine.services.metrics import ActivityRepository, MetricsService
from consistency_engine.services.reactions import ReactionRepository, ReactionService
from consistency_engine.services.rewards import ReactionRewardService
from consistency_engine.services.squads import SquadRepository, SquadService
from consistency_engine.services.wallet import WalletRepository, WalletService

NOW = datetime(2024, 6, 15, 18, 0, tzinfo=UTC)


def fixed_clock(now: datetime = NOW):  # type: ignore[no-untyped-def]
    """Return a clock callable that always reports ``now``."""
    return lambda: now


@dataclass
class InMemoryActivityRepository(ActivityRepository):
    """In-memory activity log for tests."""

    entries: list[ActivityLogEntry] = field(default_factory=list)

    def add(self, user_id: UUID, *timestamps: datetime) -> None:
        for timestamp in timestamps:
            self.entries.append(
                ActivityLogEntry(user_id=user_id, occurred_at=timestamp)
            )

    def add_days_ago(self, user_id: UUID, *offsets: int, now: datetime = NOW) -> None:
        self.add(user_id, *(now - timedelta(days=offset) for offset in offsets))

    def list_activity(
        self, user_id: UUID, since: datetime | None
    ) -> list[ActivityLogEntry]:
        rows = [entry for entry in self.entries if entry.user_id == user_id]
        if since is not None:
            rows = [entry for entry in rows if entry.occurred_at >= since]
        return sorted(rows, key=lambda entry: entry.occurred_at)


@dataclass
class InMemoryFreezeRepository(FreezeRepository):
    """In-memory freeze ledger with the same conditional writes as Supabase."""

    freezes: dict[UUID, StreakFreeze] = field(default_factory=dict)
    consumptions: dict[tuple[UUID, date], FreezeConsumption] = field(
        default_factory=dict
    )
    lock: threading.Lock = field(default_factory=threading.Lock)

    def list_active_freezes(self, user_id: UUID, now: datetime) -> list[StreakFreeze]:
        active = [
            freeze
            for freeze in self.freezes.values()
            if freeze.user_id == user_id and freeze.is_active(now)
        ]
        return sorted(active, key=lambda freeze: freeze.activated_at)

    def save_freezes(self, user_id: UUID, freezes: list[StreakFreeze]) -> None:
        with self.lock:
            for freeze in freezes:
                self.freezes[freeze.id] = freeze

    def list_covered_days(self, user_id: UUID) -> set[date]:
        return {day for owner, day in self.consumptions if owner == user_id}

    def consume_freeze(
        self, user_id: UUID, consumption: FreezeConsumption, expected_remaining: int
    ) -> bool:
        with self.lock:
            key = (user_id, consumption.covered_day)
            if key in self.consumptions:
                return False
            freeze = self.freezes.get(consumption.freeze_id)
            if freeze is None or freeze.days_remaining != expected_remaining:
                return False
            self.consumptions[key] = consumption
            self.freezes[freeze.id] = replace(
                freeze, days_remaining=expected_remaining - 1
            )
            return True

    def delete_inert_freezes(self, user_id: UUID, now: datetime) -> int:
        with self.lock:
            inert = [
                freeze_id
                for freeze_id, freeze in self.freezes.items()
                if freeze.user_id == user_id and not freeze.is_active(now)
            ]
            for freeze_id in inert:
                del self.freezes[freeze_id]
            return len(inert)


@dataclass
class InMemorySquadRepository(SquadRepository):
    """In-memory squads with a version compare-and-swap."""

    squads: dict[UUID, Squad] = field(default_factory=dict)
    conflicts: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock)

    def get_squad(self, squad_id: UUID) -> Squad | None:
        return self.squads.get(squad_id)

    def create_squad(self, squad: Squad) -> Squad:
        with self.lock:
            self.squads[squad.id] = squad
        return squad

    def save_squad(self, squad: Squad, expected_version: int) -> bool:
        with self.lock:
            stored = self.squads.get(squad.id)
            if stored is None or stored.version != expected_version:
                return False
            if self.conflicts:
                # Simulate another writer winning the race.
                self.conflicts -= 1
                self.squads[squad.id] = replace(stored, version=stored.version + 1)
                return False
            members = tuple(
                stored.member(member.user_id) or member for member in squad.members
            )
            self.squads[squad.id] = replace(
                squad, members=members, version=expected_version + 1
            )
            return True

    def update_member_stats(
        self, squad_id: UUID, user_id: UUID, consistency_score: int, streak: int
    ) -> bool:
        with self.lock:
            stored = self.squads.get(squad_id)
            if stored is None or stored.member(user_id) is None:
                return False
            members = tuple(
                replace(member, consistency_score=consistency_score, streak=streak)
                if member.user_id == user_id
                else member
                for member in stored.members
            )
            self.squads[squad_id] = replace(stored, members=members)
            return True

    def list_squad_ids(self, user_id: UUID) -> set[UUID]:
        return {
            squad.id
            for squad in self.squads.values()
            if squad.member(user_id) is not None
        }


@dataclass
class InMemoryReactionRepository(ReactionRepository):
    """In-memory reactions keyed by (user_id, target_id)."""

    reactions: dict[tuple[UUID, str], Reaction] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def get_reaction(self, user_id: UUID, target_id: str) -> Reaction | None:
        return self.reactions.get((user_id, target_id))

    def create_reaction(self, reaction: Reaction) -> bool:
        with self.lock:
            key = (reaction.user_id, reaction.target_id)
            if key in self.reactions:
                return False
            self.reactions[key] = reaction
            return True

    def replace_reaction(self, reaction: Reaction, expected_type: ReactionType) -> bool:
        with self.lock:
            key = (reaction.user_id, reaction.target_id)
            stored = self.reactions.get(key)
            if stored is None or stored.type != expected_type:
                return False
            self.reactions[key] = reaction
            return True

    def delete_reaction(self, reaction_id: UUID, expected_type: ReactionType) -> bool:
        with self.lock:
            for key, stored in self.reactions.items():
                if stored.id == reaction_id:
                    if stored.type != expected_type:
                        return False
                    del self.reactions[key]
                    return True
            return False

    def list_reactions(self, target_id: str) -> list[Reaction]:
        return [
            reaction
            for reaction in self.reactions.values()
            if reaction.target_id == target_id
        ]


@dataclass
class InMemoryWalletRepository(WalletRepository):
    """In-memory wallet with a transaction ledger."""

    balances: dict[UUID, int] = field(default_factory=dict)
    transactions: list[CoinTransaction] = field(default_factory=list)
    keys: set[str] = field(default_factory=set)
    lock: threading.Lock = field(default_factory=threading.Lock)

    def get_balance(self, user_id: UUID) -> int:
        return self.balances.get(user_id, 0)

    def credit(  # noqa: PLR0913
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        at: datetime,
        key: str | None = None,
    ) -> int | None:
        with self.lock:
            if key is not None:
                if key in self.keys:
                    return None
                self.keys.add(key)
            balance = self.balances.get(user_id, 0) + amount
            self.balances[user_id] = balance
            self.transactions.append(
                CoinTransaction(
                    user_id=user_id, amount=amount, reason=reason, created_at=at
                )
            )
            return balance

    def debit(self, user_id: UUID, amount: int, reason: str, at: datetime) -> bool:
        with self.lock:
            balance = self.balances.get(user_id, 0)
            if balance < amount:
                return False
            self.balances[user_id] = balance - amount
            self.transactions.append(
                CoinTransaction(
                    user_id=user_id, amount=-amount, reason=reason, created_at=at
                )
            )
            return True

    def list_transactions(
        self, user_id: UUID, reason: str, since: datetime
    ) -> list[CoinTransaction]:
        return [
            tx
            for tx in self.transactions
            if tx.user_id == user_id and tx.reason == reason and tx.created_at >= since
        ]


def make_member(
    user_id: UUID,
    *,
    score: int = 0,
    streak: int = 0,
    joined_at: datetime = NOW,
    username: str | None = None,
) -> SquadMember:
    """Build a squad member row."""
    return SquadMember(
        user_id=user_id,
        username=username or f"user-{str(user_id)[:8]}",
        avatar_url=None,
        consistency_score=score,
        streak=streak,
        joined_at=joined_at,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="header.payload.signature",
        admin_token="admin-token",
    )


@pytest.fixture
def activity_repository() -> InMemoryActivityRepository:
    return InMemoryActivityRepository()


@pytest.fixture
def freeze_repository() -> InMemoryFreezeRepository:
    return InMemoryFreezeRepository()


@pytest.fixture
def squad_repository() -> InMemorySquadRepository:
    return InMemorySquadRepository()


@pytest.fixture
def reaction_repository() -> InMemoryReactionRepository:
    return InMemoryReactionRepository()


@pytest.fixture
def wallet_repository() -> InMemoryWalletRepository:
    return InMemoryWalletRepository()


@pytest.fixture
def wallet_service(wallet_repository: InMemoryWalletRepository) -> WalletService:
    return WalletService(wallet_repository, clock=fixed_clock())


@pytest.fixture
def metrics_service(
    activity_repository: InMemoryActivityRepository,
    freeze_repository: InMemoryFreezeRepository,
) -> MetricsService:
    return MetricsService(
        activity_repository=activity_repository,
        freeze_repository=freeze_repository,
        clock=fixed_clock(),
    )


@pytest.fixture
def freeze_service(
    freeze_repository: InMemoryFreezeRepository, wallet_service: WalletService
) -> FreezeService:
    return FreezeService(
        repository=freeze_repository,
        wallet_service=wallet_service,
        clock=fixed_clock(),
    )


@pytest.fixture
def squad_service(
    squad_repository: InMemorySquadRepository, metrics_service: MetricsService
) -> SquadService:
    return SquadService(
        repository=squad_repository,
        metrics_service=metrics_service,
        recompute_workers=2,
        clock=fixed_clock(),
    )


@pytest.fixture
def reward_service(wallet_service: WalletService) -> ReactionRewardService:
    return ReactionRewardService(wallet_service=wallet_service, clock=fixed_clock())


@pytest.fixture
def reaction_service(
    reaction_repository: InMemoryReactionRepository,
    squad_repository: InMemorySquadRepository,
    reward_service: ReactionRewardService,
) -> ReactionService:
    return ReactionService(
        repository=reaction_repository,
        squad_repository=squad_repository,
        reward_service=reward_service,
        clock=fixed_clock(),
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    metrics_service: MetricsService,
    freeze_service: FreezeService,
    wallet_service: WalletService,
    squad_service: SquadService,
    reaction_service: ReactionService,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        metrics_service=metrics_service,
        freeze_service=freeze_service,
        wallet_service=wallet_service,
        squad_service=squad_service,
        reaction_service=reaction_service,
        close_resources=close_resources,
    )
