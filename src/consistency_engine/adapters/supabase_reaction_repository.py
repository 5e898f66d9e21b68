"""Supabase repository for reactions."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from consistency_engine.adapters.supabase_support import (
    UNIQUE_VIOLATION,
    execute,
    parse_datetime,
)
from consistency_engine.domain.errors import StorageError
from consistency_engine.domain.reactions import Reaction, ReactionContext, ReactionType
from consistency_engine.services.reactions import ReactionRepository


@dataclass
class SupabaseReactionRepository(ReactionRepository):
    """Supabase implementation relying on unique (user_id, target_id)."""

    client: Client

    def get_reaction(self, user_id: UUID, target_id: str) -> Reaction | None:
        """Return the user's reaction to a target."""
        rows = execute(
            self.client.table("reactions")
            .select("*")
            .eq("user_id", str(user_id))
            .eq("target_id", target_id)
            .limit(1)
        )
        if not rows:
            return None
        return _parse_reaction(rows[0])

    def create_reaction(self, reaction: Reaction) -> bool:
        """Insert a reaction unless one already exists for the pair."""
        try:
            execute(self.client.table("reactions").insert(_serialize(reaction)))
        except StorageError as exc:
            if exc.code == UNIQUE_VIOLATION:
                return False
            raise
        return True

    def replace_reaction(self, reaction: Reaction, expected_type: ReactionType) -> bool:
        """Update the reaction row if its type has not changed."""
        payload = _serialize(reaction)
        payload.pop("id")
        rows = execute(
            self.client.table("reactions")
            .update(payload)
            .eq("id", str(reaction.id))
            .eq("type", expected_type.value)
        )
        return bool(rows)

    def delete_reaction(self, reaction_id: UUID, expected_type: ReactionType) -> bool:
        """Delete the reaction row if its type has not changed."""
        rows = execute(
            self.client.table("reactions")
            .delete()
            .eq("id", str(reaction_id))
            .eq("type", expected_type.value)
        )
        return bool(rows)

    def list_reactions(self, target_id: str) -> list[Reaction]:
        """Return reactions to a target, newest first."""
        rows = execute(
            self.client.table("reactions")
            .select("*")
            .eq("target_id", target_id)
            .order("timestamp", desc=True)
        )
        return [_parse_reaction(row) for row in rows]


def _serialize(reaction: Reaction) -> dict[str, object]:
    return {
        "id": str(reaction.id),
        "user_id": str(reaction.user_id),
        "target_user_id": str(reaction.target_user_id),
        "type": reaction.type.value,
        "context": reaction.context.value,
        "target_id": reaction.target_id,
        "timestamp": reaction.timestamp.isoformat(),
    }


def _parse_reaction(row: dict[str, object]) -> Reaction:
    return Reaction(
        id=UUID(str(row["id"])),
        user_id=UUID(str(row["user_id"])),
        target_user_id=UUID(str(row["target_user_id"])),
        type=ReactionType(str(row["type"])),
        context=ReactionContext(str(row["context"])),
        target_id=str(row["target_id"]),
        timestamp=parse_datetime(row.get("timestamp")),
    )
