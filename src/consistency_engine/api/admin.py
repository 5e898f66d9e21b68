"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from consistency_engine.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.post("/squads/{squad_id}/recompute", dependencies=[Depends(require_admin)])
async def recompute_squad(squad_id: UUID, request: Request) -> dict[str, object]:
    """Refresh every member's score and streak in a squad."""
    container: AppContainer = request.app.state.container
    updated = container.squad_service.recompute_all(squad_id)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"squad_id": str(squad_id), "updated": updated}


@router.post(
    "/users/{user_id}/freezes/prune", dependencies=[Depends(require_admin)]
)
async def prune_freezes(user_id: UUID, request: Request) -> dict[str, object]:
    """Delete a user's used-up or expired freezes."""
    container: AppContainer = request.app.state.container
    removed = container.freeze_service.prune(user_id)
    return {"user_id": str(user_id), "removed": removed}


@router.post("/users/{user_id}/freezes", dependencies=[Depends(require_admin)])
async def grant_freeze(
    user_id: UUID, request: Request, days: int = 1
) -> dict[str, object]:
    """Grant a freeze without charging coins."""
    container: AppContainer = request.app.state.container
    freeze = container.freeze_service.activate(user_id, days)
    return {
        "id": str(freeze.id),
        "days_remaining": freeze.days_remaining,
        "expires_at": freeze.expires_at.isoformat(),
    }
