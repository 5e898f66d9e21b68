"""Coin wallet service backed by a transaction ledger."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from consistency_engine.domain.errors import (
    ErrorKind,
    InvalidInputError,
    OperationResult,
)
from consistency_engine.domain.wallet import CoinTransaction

logger = logging.getLogger(__name__)


class WalletRepository(Protocol):
    """Persistence interface for coin balances."""

    def get_balance(self, user_id: UUID) -> int:
        """Return the current balance, zero for unknown users."""

    def credit(
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        at: datetime,
        key: str | None = None,
    ) -> int | None:
        """Add coins and return the new balance; None if ``key`` was used."""

    def debit(self, user_id: UUID, amount: int, reason: str, at: datetime) -> bool:
        """Atomically remove coins; return False when the balance is too low."""

    def list_transactions(
        self, user_id: UUID, reason: str, since: datetime
    ) -> list[CoinTransaction]:
        """Return transactions with a reason since a point in time."""


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class WalletService:
    """Application service for coin balances."""

    repository: WalletRepository
    clock: Callable[[], datetime] = _utc_now

    def balance(self, user_id: UUID) -> int:
        """Return a user's coin balance."""
        return self.repository.get_balance(user_id)

    def credit(
        self, user_id: UUID, amount: int, reason: str, key: str | None = None
    ) -> int | None:
        """Credit coins and return the new balance.

        With a ``key``, the credit happens at most once and None is returned
        when it already did.
        """
        if amount <= 0:
            raise InvalidInputError("Credit amount must be positive")
        return self.repository.credit(user_id, amount, reason, self.clock(), key=key)

    def spend(self, user_id: UUID, amount: int, reason: str) -> OperationResult[int]:
        """Debit coins, failing without side effects when funds are short."""
        if amount <= 0:
            return OperationResult.failure(
                ErrorKind.INVALID_INPUT, "Spend amount must be positive"
            )
        if not self.repository.debit(user_id, amount, reason, self.clock()):
            return OperationResult.failure(
                ErrorKind.INSUFFICIENT_FUNDS, f"Not enough coins for {reason}"
            )
        logger.info("User %s spent %s coins on %s", user_id, amount, reason)
        return OperationResult.success(self.repository.get_balance(user_id))

    def credited_since(self, user_id: UUID, reason: str, since: datetime) -> int:
        """Return coins credited for a reason since a point in time."""
        return sum(
            tx.amount
            for tx in self.repository.list_transactions(user_id, reason, since)
            if tx.amount > 0
        )
