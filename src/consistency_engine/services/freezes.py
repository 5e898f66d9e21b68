"""Streak freeze ledger.

The module-level functions are pure transformations over a freeze
collection. ``FreezeService`` persists their results through a
``FreezeRepository``.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, timedelta
from typing import Protocol
from uuid import UUID, uuid4

from consistency_engine.domain.errors import (
    ErrorKind,
    InvalidInputError,
    OperationResult,
    StorageError,
)
from consistency_engine.domain.freezes import FreezeConsumption, StreakFreeze
from consistency_engine.services.wallet import WalletService

logger = logging.getLogger(__name__)

FREEZE_PURCHASE_REASON = "streak_freeze"


class FreezeRepository(Protocol):
    """Persistence interface for streak freezes."""

    def list_active_freezes(self, user_id: UUID, now: datetime) -> list[StreakFreeze]:
        """Return unexpired freezes with days remaining, oldest first."""

    def save_freezes(self, user_id: UUID, freezes: list[StreakFreeze]) -> None:
        """Insert or update freeze rows."""

    def list_covered_days(self, user_id: UUID) -> set[date]:
        """Return every day already bridged by a freeze."""

    def consume_freeze(
        self, user_id: UUID, consumption: FreezeConsumption, expected_remaining: int
    ) -> bool:
        """Record a consumption and decrement the freeze.

        Returns False when the day is already covered or the freeze no
        longer has ``expected_remaining`` days; nothing is written then.
        """

    def delete_inert_freezes(self, user_id: UUID, now: datetime) -> int:
        """Delete used-up or expired freezes and return how many."""


def activate(user_id: UUID, days: int, now: datetime) -> StreakFreeze:
    """Create a freeze covering ``days`` missed days."""
    if days < 1:
        raise InvalidInputError("A freeze must cover at least one day")
    return StreakFreeze(
        id=uuid4(),
        user_id=user_id,
        days_remaining=days,
        activated_at=now,
        expires_at=now + timedelta(days=days),
    )


def has_active(freezes: Iterable[StreakFreeze], now: datetime) -> bool:
    """Return True when any freeze can still cover a day."""
    return any(freeze.is_active(now) for freeze in freezes)


def remaining_days(freezes: Iterable[StreakFreeze], now: datetime) -> int:
    """Sum days remaining over non-expired freezes."""
    return sum(freeze.days_remaining for freeze in freezes if freeze.is_active(now))


def next_to_consume(
    freezes: Iterable[StreakFreeze], now: datetime
) -> StreakFreeze | None:
    """Return the earliest-activated freeze that can cover a day."""
    candidates = [freeze for freeze in freezes if freeze.is_active(now)]
    if not candidates:
        return None
    return min(candidates, key=lambda freeze: (freeze.activated_at, str(freeze.id)))


def consume_one(
    freezes: Iterable[StreakFreeze], now: datetime
) -> list[StreakFreeze]:
    """Spend one day from the next freeze and drop inert entries."""
    current = list(freezes)
    target = next_to_consume(current, now)
    updated = []
    for freeze in current:
        if target is not None and freeze.id == target.id:
            freeze = replace(freeze, days_remaining=freeze.days_remaining - 1)
        if freeze.is_active(now):
            updated.append(freeze)
    return updated


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class FreezeService:
    """Application service for buying, listing and pruning freezes."""

    repository: FreezeRepository
    wallet_service: WalletService
    cost_per_day: int = 500
    clock: Callable[[], datetime] = _utc_now

    def list_active(self, user_id: UUID) -> list[StreakFreeze]:
        """Return the user's active freezes."""
        return self.repository.list_active_freezes(user_id, self.clock())

    def remaining_days(self, user_id: UUID) -> int:
        """Return how many missed days the user can still absorb."""
        now = self.clock()
        return remaining_days(self.repository.list_active_freezes(user_id, now), now)

    def activate(self, user_id: UUID, days: int = 1) -> StreakFreeze:
        """Grant a freeze without charging coins."""
        freeze = activate(user_id, days, self.clock())
        self.repository.save_freezes(user_id, [freeze])
        logger.info("Activated %s-day freeze %s for %s", days, freeze.id, user_id)
        return freeze

    def purchase(self, user_id: UUID, days: int = 1) -> OperationResult[StreakFreeze]:
        """Buy a freeze with coins, refunding if it cannot be saved."""
        if days < 1:
            return OperationResult.failure(
                ErrorKind.INVALID_INPUT, "A freeze must cover at least one day"
            )
        cost = self.cost_per_day * days
        spent = self.wallet_service.spend(user_id, cost, FREEZE_PURCHASE_REASON)
        if not spent.ok:
            return OperationResult.failure(spent.error, spent.reason or "")
        try:
            freeze = self.activate(user_id, days)
        except StorageError:
            logger.exception("Refunding %s coins to %s", cost, user_id)
            self.wallet_service.credit(
                user_id, cost, f"{FREEZE_PURCHASE_REASON}_refund"
            )
            raise
        return OperationResult.success(freeze)

    def prune(self, user_id: UUID) -> int:
        """Delete freezes that can no longer cover a day."""
        removed = self.repository.delete_inert_freezes(user_id, self.clock())
        if removed:
            logger.info("Pruned %s inert freezes for %s", removed, user_id)
        return removed
