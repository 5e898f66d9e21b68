"""Supabase repository for streak freezes."""

from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from supabase import Client

from consistency_engine.adapters.supabase_support import (
    UNIQUE_VIOLATION,
    execute,
    parse_date,
    parse_datetime,
)
from consistency_engine.domain.errors import StorageError
from consistency_engine.domain.freezes import FreezeConsumption, StreakFreeze
from consistency_engine.services.freezes import FreezeRepository


@dataclass
class SupabaseFreezeRepository(FreezeRepository):
    """Supabase implementation of the freeze ledger."""

    client: Client

    def list_active_freezes(self, user_id: UUID, now: datetime) -> list[StreakFreeze]:
        """Return usable freezes ordered by activation time."""
        rows = execute(
            self.client.table("streak_freezes")
            .select("*")
            .eq("user_id", str(user_id))
            .gt("days_remaining", 0)
            .gt("expires_at", now.isoformat())
            .order("activated_at", desc=False)
        )
        return [_parse_freeze(row) for row in rows]

    def save_freezes(self, user_id: UUID, freezes: list[StreakFreeze]) -> None:
        """Upsert freeze rows."""
        if not freezes:
            return
        execute(
            self.client.table("streak_freezes").upsert(
                [_serialize_freeze(user_id, freeze) for freeze in freezes]
            )
        )

    def list_covered_days(self, user_id: UUID) -> set[date]:
        """Return days already bridged for the user."""
        rows = execute(
            self.client.table("freeze_consumptions")
            .select("covered_day")
            .eq("user_id", str(user_id))
        )
        return {parse_date(row.get("covered_day")) for row in rows}

    def consume_freeze(
        self, user_id: UUID, consumption: FreezeConsumption, expected_remaining: int
    ) -> bool:
        """Claim the covered day, then decrement the freeze if unchanged."""
        claim = {
            "user_id": str(user_id),
            "freeze_id": str(consumption.freeze_id),
            "covered_day": consumption.covered_day.isoformat(),
        }
        try:
            execute(self.client.table("freeze_consumptions").insert(claim))
        except StorageError as exc:
            if exc.code == UNIQUE_VIOLATION:
                return False
            raise

        updated = execute(
            self.client.table("streak_freezes")
            .update({"days_remaining": expected_remaining - 1})
            .eq("id", str(consumption.freeze_id))
            .eq("days_remaining", expected_remaining)
        )
        if updated:
            return True
        execute(
            self.client.table("freeze_consumptions")
            .delete()
            .eq("user_id", str(user_id))
            .eq("covered_day", consumption.covered_day.isoformat())
        )
        return False

    def delete_inert_freezes(self, user_id: UUID, now: datetime) -> int:
        """Delete freezes that are used up or expired."""
        used_up = execute(
            self.client.table("streak_freezes")
            .delete()
            .eq("user_id", str(user_id))
            .lte("days_remaining", 0)
        )
        expired = execute(
            self.client.table("streak_freezes")
            .delete()
            .eq("user_id", str(user_id))
            .lte("expires_at", now.isoformat())
        )
        return len(used_up) + len(expired)


def _serialize_freeze(user_id: UUID, freeze: StreakFreeze) -> dict[str, object]:
    return {
        "id": str(freeze.id),
        "user_id": str(user_id),
        "days_remaining": freeze.days_remaining,
        "activated_at": freeze.activated_at.isoformat(),
        "expires_at": freeze.expires_at.isoformat(),
    }


def _parse_freeze(row: dict[str, object]) -> StreakFreeze:
    return StreakFreeze(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        days_remaining=int(row.get("days_remaining", 0)),
        activated_at=parse_datetime(row.get("activated_at")),
        expires_at=parse_datetime(row.get("expires_at")),
    )
