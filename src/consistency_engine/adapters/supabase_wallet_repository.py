"""Supabase repository for coin wallets."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID, uuid4

from supabase import Client

from consistency_engine.adapters.supabase_support import (
    UNIQUE_VIOLATION,
    execute,
    parse_datetime,
)
from consistency_engine.domain.errors import StorageError
from consistency_engine.domain.wallet import CoinTransaction
from consistency_engine.services.wallet import WalletRepository

MAX_BALANCE_ATTEMPTS = 5


@dataclass
class SupabaseWalletRepository(WalletRepository):
    """Balances in ``coin_wallets`` with a ``coin_transactions`` ledger.

    Balance changes are conditional on the previously read balance, so
    concurrent spends cannot overdraw a wallet.
    """

    client: Client

    def get_balance(self, user_id: UUID) -> int:
        """Return the stored balance or zero."""
        balance = self._read_balance(user_id)
        return balance or 0

    def credit(
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        at: datetime,
        key: str | None = None,
    ) -> int | None:
        """Write the ledger entry, then add coins with a compare-and-swap.

        A ``key`` already present in the ledger leaves the balance untouched
        and returns None. The entry is removed again if the balance cannot be
        updated.
        """
        entry_id = uuid4()
        if not self._record(user_id, amount, reason, at, entry_id=entry_id, key=key):
            return None
        try:
            return self._add_to_balance(user_id, amount)
        except StorageError:
            execute(
                self.client.table("coin_transactions")
                .delete()
                .eq("id", str(entry_id))
            )
            raise

    def debit(self, user_id: UUID, amount: int, reason: str, at: datetime) -> bool:
        """Remove coins if the balance covers them."""
        for _ in range(MAX_BALANCE_ATTEMPTS):
            balance = self._read_balance(user_id) or 0
            if balance < amount:
                return False
            if self._swap_balance(user_id, balance, balance - amount):
                self._record(user_id, -amount, reason, at)
                return True
        raise StorageError(f"Wallet for {user_id} is busy, try again")

    def list_transactions(
        self, user_id: UUID, reason: str, since: datetime
    ) -> list[CoinTransaction]:
        """Return ledger entries for a reason since a point in time."""
        rows = execute(
            self.client.table("coin_transactions")
            .select("amount, reason, created_at")
            .eq("user_id", str(user_id))
            .eq("reason", reason)
            .gte("created_at", since.isoformat())
        )
        return [
            CoinTransaction(
                user_id=user_id,
                amount=int(row.get("amount") or 0),
                reason=str(row.get("reason") or reason),
                created_at=parse_datetime(row.get("created_at")),
            )
            for row in rows
        ]

    def _read_balance(self, user_id: UUID) -> int | None:
        rows = execute(
            self.client.table("coin_wallets")
            .select("balance")
            .eq("user_id", str(user_id))
            .limit(1)
        )
        if not rows:
            return None
        return int(rows[0].get("balance") or 0)

    def _create_wallet(self, user_id: UUID, balance: int) -> bool:
        try:
            execute(
                self.client.table("coin_wallets").insert(
                    {"user_id": str(user_id), "balance": balance}
                )
            )
        except StorageError as exc:
            if exc.code == UNIQUE_VIOLATION:
                return False
            raise
        return True

    def _swap_balance(self, user_id: UUID, expected: int, new_balance: int) -> bool:
        rows = execute(
            self.client.table("coin_wallets")
            .update({"balance": new_balance})
            .eq("user_id", str(user_id))
            .eq("balance", expected)
        )
        return bool(rows)

    def _add_to_balance(self, user_id: UUID, amount: int) -> int:
        for _ in range(MAX_BALANCE_ATTEMPTS):
            balance = self._read_balance(user_id)
            if balance is None:
                if self._create_wallet(user_id, amount):
                    return amount
                continue
            if self._swap_balance(user_id, balance, balance + amount):
                return balance + amount
        raise StorageError(f"Wallet for {user_id} is busy, try again")

    def _record(  # noqa: PLR0913
        self,
        user_id: UUID,
        amount: int,
        reason: str,
        at: datetime,
        entry_id: UUID | None = None,
        key: str | None = None,
    ) -> bool:
        try:
            execute(
                self.client.table("coin_transactions").insert(
                    {
                        "id": str(entry_id or uuid4()),
                        "user_id": str(user_id),
                        "amount": amount,
                        "reason": reason,
                        "idempotency_key": key,
                        "created_at": at.isoformat(),
                    }
                )
            )
        except StorageError as exc:
            if key is not None and exc.code == UNIQUE_VIOLATION:
                return False
            raise
        return True
