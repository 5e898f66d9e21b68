"""Supabase repository for squads and squad members."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from consistency_engine.adapters.supabase_support import execute, parse_datetime
from consistency_engine.domain.errors import StorageError
from consistency_engine.domain.squads import Squad, SquadMember
from consistency_engine.services.squads import SquadRepository


@dataclass
class SupabaseSquadRepository(SquadRepository):
    """Supabase implementation for squads.

    Membership writes are guarded by a compare-and-swap on
    ``squads.version``; score updates touch single member rows only.
    """

    client: Client

    def get_squad(self, squad_id: UUID) -> Squad | None:
        """Return a squad with its members."""
        rows = execute(
            self.client.table("squads").select("*").eq("id", str(squad_id)).limit(1)
        )
        if not rows:
            return None
        member_rows = execute(
            self.client.table("squad_members")
            .select("*")
            .eq("squad_id", str(squad_id))
            .order("joined_at", desc=False)
        )
        return _parse_squad(rows[0], member_rows)

    def create_squad(self, squad: Squad) -> Squad:
        """Insert the squad row and its initial members."""
        rows = execute(
            self.client.table("squads").insert(
                {
                    "id": str(squad.id),
                    "owner_id": str(squad.owner_id),
                    "created_at": squad.created_at.isoformat(),
                    "updated_at": squad.updated_at.isoformat(),
                    "version": squad.version,
                }
            )
        )
        if not rows:
            raise StorageError("Failed to create squad")
        if squad.members:
            try:
                execute(
                    self.client.table("squad_members").insert(
                        [
                            _serialize_member(squad.id, member)
                            for member in squad.members
                        ]
                    )
                )
            except StorageError:
                execute(self.client.table("squads").delete().eq("id", str(squad.id)))
                raise
        return squad

    def save_squad(self, squad: Squad, expected_version: int) -> bool:
        """Apply membership changes if nobody else changed the squad first."""
        claimed = execute(
            self.client.table("squads")
            .update(
                {
                    "version": expected_version + 1,
                    "updated_at": squad.updated_at.isoformat(),
                }
            )
            .eq("id", str(squad.id))
            .eq("version", expected_version)
        )
        if not claimed:
            return False

        stored_rows = execute(
            self.client.table("squad_members")
            .select("user_id")
            .eq("squad_id", str(squad.id))
        )
        stored_ids = {str(row["user_id"]) for row in stored_rows}
        wanted_ids = {str(member.user_id) for member in squad.members}

        removed = sorted(stored_ids - wanted_ids)
        if removed:
            execute(
                self.client.table("squad_members")
                .delete()
                .eq("squad_id", str(squad.id))
                .in_("user_id", removed)
            )
        added = [
            _serialize_member(squad.id, member)
            for member in squad.members
            if str(member.user_id) not in stored_ids
        ]
        if added:
            execute(self.client.table("squad_members").insert(added))
        return True

    def update_member_stats(
        self, squad_id: UUID, user_id: UUID, consistency_score: int, streak: int
    ) -> bool:
        """Overwrite an existing member row's score and streak."""
        rows = execute(
            self.client.table("squad_members")
            .update({"consistency_score": consistency_score, "streak": streak})
            .eq("squad_id", str(squad_id))
            .eq("user_id", str(user_id))
        )
        return bool(rows)

    def list_squad_ids(self, user_id: UUID) -> set[UUID]:
        """Return the squads a user belongs to."""
        rows = execute(
            self.client.table("squad_members")
            .select("squad_id")
            .eq("user_id", str(user_id))
        )
        return {UUID(str(row["squad_id"])) for row in rows}


def _serialize_member(squad_id: UUID, member: SquadMember) -> dict[str, object]:
    return {
        "squad_id": str(squad_id),
        "user_id": str(member.user_id),
        "username": member.username,
        "avatar_url": member.avatar_url,
        "consistency_score": member.consistency_score,
        "streak": member.streak,
        "joined_at": member.joined_at.isoformat(),
    }


def _parse_member(row: dict[str, object]) -> SquadMember:
    return SquadMember(
        user_id=UUID(str(row["user_id"])),
        username=str(row.get("username") or ""),
        avatar_url=row.get("avatar_url"),
        consistency_score=int(row.get("consistency_score") or 0),
        streak=int(row.get("streak") or 0),
        joined_at=parse_datetime(row.get("joined_at")),
    )


def _parse_squad(row: dict[str, object], member_rows: list[dict[str, object]]) -> Squad:
    return Squad(
        id=UUID(str(row["id"])),
        owner_id=UUID(str(row["owner_id"])),
        members=tuple(_parse_member(member) for member in member_rows),
        created_at=parse_datetime(row.get("created_at")),
        updated_at=parse_datetime(row.get("updated_at")),
        version=int(row.get("version") or 0),
    )
