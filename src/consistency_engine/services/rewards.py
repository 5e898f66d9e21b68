"""Coin rewards for receiving reactions, capped per day."""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from consistency_engine.services.wallet import WalletService

logger = logging.getLogger(__name__)

REACTION_REWARD_REASON = "reaction_reward"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ReactionRewardService:
    """Credits coins to users whose items receive reactions."""

    wallet_service: WalletService
    coins_per_reaction: int = 10
    daily_cap: int = 50
    clock: Callable[[], datetime] = _utc_now

    def available_today(self, user_id: UUID) -> int:
        """Return how many more coins the user can earn today."""
        earned = self.wallet_service.credited_since(
            user_id, REACTION_REWARD_REASON, self._start_of_day()
        )
        return max(0, self.daily_cap - earned)

    def award(self, recipient_id: UUID) -> int:
        """Credit a reaction reward and return the coins actually granted.

        Every reward claims a numbered slot of the day's cap through a keyed
        ledger entry, so concurrent awards cannot exceed ``daily_cap``.
        """
        if self.coins_per_reaction <= 0 or self.daily_cap <= 0:
            return 0
        day_start = self._start_of_day()
        earned = self.wallet_service.credited_since(
            recipient_id, REACTION_REWARD_REASON, day_start
        )
        slots = math.ceil(self.daily_cap / self.coins_per_reaction)
        for slot in range(earned // self.coins_per_reaction, slots):
            amount = min(
                self.coins_per_reaction,
                self.daily_cap - slot * self.coins_per_reaction,
            )
            key = (
                f"{REACTION_REWARD_REASON}:{recipient_id}:"
                f"{day_start.date().isoformat()}:{slot}"
            )
            balance = self.wallet_service.credit(
                recipient_id, amount, REACTION_REWARD_REASON, key=key
            )
            if balance is not None:
                return amount
        logger.info("Daily reaction reward cap reached for %s", recipient_id)
        return 0

    def _start_of_day(self) -> datetime:
        now = self.clock().astimezone(UTC)
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
