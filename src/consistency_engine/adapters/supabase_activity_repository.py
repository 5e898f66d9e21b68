"""Supabase repository for the activity log."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from supabase import Client

from consistency_engine.adapters.supabase_support import (
    PAGE_SIZE,
    execute_paged,
    parse_datetime,
)
from consistency_engine.domain.activity import ActivityLogEntry
from consistency_engine.services.metrics import ActivityRepository


@dataclass
class SupabaseActivityRepository(ActivityRepository):
    """Reads trackable actions from the ``activity_logs`` table."""

    client: Client
    page_size: int = PAGE_SIZE

    def list_activity(
        self, user_id: UUID, since: datetime | None
    ) -> list[ActivityLogEntry]:
        """Return a user's whole activity, oldest first, across all pages."""

        def build_query() -> Any:
            query = (
                self.client.table("activity_logs")
                .select("id, occurred_at")
                .eq("user_id", str(user_id))
            )
            if since is not None:
                query = query.gte("occurred_at", since.isoformat())
            return query.order("occurred_at", desc=False).order("id", desc=False)

        rows = execute_paged(build_query, self.page_size)
        return [
            ActivityLogEntry(
                user_id=user_id, occurred_at=parse_datetime(row.get("occurred_at"))
            )
            for row in rows
        ]
