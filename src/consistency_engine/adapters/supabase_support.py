"""Helpers shared by the Supabase repositories."""

from collections.abc import Callable
from datetime import date, datetime
from typing import Any

from postgrest.exceptions import APIError

from consistency_engine.domain.errors import StorageError

UNIQUE_VIOLATION = "23505"
# Default PostgREST max-rows on Supabase projects.
PAGE_SIZE = 1000


def execute(query: Any) -> list[dict[str, Any]]:
    """Run a PostgREST query and return its rows, wrapping API failures."""
    try:
        response = query.execute()
    except APIError as exc:
        raise StorageError(str(exc.message or exc), code=exc.code) from exc
    return response.data or []


def execute_paged(
    build_query: Callable[[], Any], page_size: int = PAGE_SIZE
) -> list[dict[str, Any]]:
    """Run a select page by page until the server returns a short page.

    ``build_query`` must return a fresh, stably ordered query on every call.
    """
    rows: list[dict[str, Any]] = []
    offset = 0
    while True:
        page = execute(build_query().range(offset, offset + page_size - 1))
        rows.extend(page)
        if len(page) < page_size:
            return rows
        offset += page_size


def parse_datetime(raw: object) -> datetime:
    """Parse a timestamp column into an aware datetime."""
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw:
        raise StorageError(f"Invalid timestamp value: {raw!r}")
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def parse_date(raw: object) -> date:
    """Parse a date column."""
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw:
        raise StorageError(f"Invalid date value: {raw!r}")
    return date.fromisoformat(raw[:10])
