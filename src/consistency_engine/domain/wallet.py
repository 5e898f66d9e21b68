"""Domain models for the coin wallet."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(frozen=True)
class CoinTransaction:
    """A signed change to a user's coin balance."""

    user_id: UUID
    amount: int
    reason: str
    created_at: datetime
