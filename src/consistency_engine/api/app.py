"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import UUID

from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from consistency_engine.api.admin import router as admin_router
from consistency_engine.api.models import (
    CreateSquadRequest,
    DayResponse,
    FreezePurchaseRequest,
    FreezeResponse,
    JoinSquadRequest,
    MemberResponse,
    MetricsResponse,
    MilestoneResponse,
    MilestonesResponse,
    ReactionRequest,
    ReactionResponse,
    ReactResponse,
    SquadResponse,
)
from consistency_engine.app_logging import configure_logging
from consistency_engine.containers import AppContainer
from consistency_engine.domain.errors import (
    ErrorKind,
    InvalidInputError,
    OperationResult,
    StorageError,
)
from consistency_engine.domain.freezes import StreakFreeze
from consistency_engine.domain.metrics import ConsistencyMetrics
from consistency_engine.domain.milestones import Milestone
from consistency_engine.domain.reactions import Reaction
from consistency_engine.domain.squads import Squad, SquadMember

_UNPROCESSABLE = 422

_ERROR_STATUS = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CAPACITY_EXCEEDED: status.HTTP_409_CONFLICT,
    ErrorKind.DUPLICATE_MEMBERSHIP: status.HTTP_409_CONFLICT,
    ErrorKind.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_INPUT: _UNPROCESSABLE,
    ErrorKind.INSUFFICIENT_FUNDS: status.HTTP_402_PAYMENT_REQUIRED,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(StorageError)
    async def storage_error_handler(
        request: Request, exc: StorageError
    ) -> JSONResponse:
        logger.exception(
            "Storage failure on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Temporarily unavailable, try again"},
        )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(
        request: Request, exc: InvalidInputError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=_UNPROCESSABLE,
            content={"detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/users/{user_id}/metrics")
    async def user_metrics(
        user_id: UUID, request: Request, timezone: str | None = None
    ) -> MetricsResponse:
        """Return fresh consistency metrics for a user."""
        state_container: AppContainer = request.app.state.container
        metrics = state_container.metrics_service.compute_metrics(user_id, timezone)
        return _metrics_response(metrics)

    @app.get("/users/{user_id}/milestones")
    async def user_milestones(
        user_id: UUID, request: Request, timezone: str | None = None
    ) -> MilestonesResponse:
        """Return milestone progress for a user."""
        state_container: AppContainer = request.app.state.container
        progress = state_container.metrics_service.get_milestones(user_id, timezone)
        achieved = {
            entry.milestone.threshold_days
            for entry in progress.milestones
            if entry.achieved
        }
        return MilestonesResponse(
            milestones=[
                _milestone_response(entry.milestone, entry.achieved)
                for entry in progress.milestones
            ],
            next_milestone=_milestone_response(
                progress.next_milestone,
                progress.next_milestone.threshold_days in achieved,
            ),
            days_until_next=progress.days_until_next,
        )

    @app.get("/users/{user_id}/history")
    async def user_history(
        user_id: UUID,
        request: Request,
        days: int = Query(default=30, ge=1, le=366),
        timezone: str | None = None,
    ) -> list[DayResponse]:
        """Return per-day streak statuses, oldest first."""
        state_container: AppContainer = request.app.state.container
        history = state_container.metrics_service.day_history(user_id, days, timezone)
        return [
            DayResponse(
                day=entry.day, status=entry.status.value, log_count=entry.log_count
            )
            for entry in history
        ]

    @app.get("/users/{user_id}/freezes")
    async def user_freezes(user_id: UUID, request: Request) -> list[FreezeResponse]:
        """Return the user's active streak freezes."""
        state_container: AppContainer = request.app.state.container
        freezes = state_container.freeze_service.list_active(user_id)
        return [_freeze_response(freeze) for freeze in freezes]

    @app.post("/users/{user_id}/freezes")
    async def purchase_freeze(
        user_id: UUID, payload: FreezePurchaseRequest, request: Request
    ) -> FreezeResponse:
        """Buy a streak freeze with coins."""
        state_container: AppContainer = request.app.state.container
        result = state_container.freeze_service.purchase(user_id, payload.days)
        _raise_for_failure(result)
        return _freeze_response(result.value)

    @app.get("/users/{user_id}/wallet")
    async def user_wallet(user_id: UUID, request: Request) -> dict[str, int]:
        """Return the user's coin balance."""
        state_container: AppContainer = request.app.state.container
        return {"balance": state_container.wallet_service.balance(user_id)}

    @app.post("/squads")
    async def create_squad(
        payload: CreateSquadRequest, request: Request
    ) -> SquadResponse:
        """Create a squad owned by the caller."""
        state_container: AppContainer = request.app.state.container
        squad = state_container.squad_service.create_squad(
            payload.owner_id, payload.username, payload.avatar_url
        )
        return _squad_response(squad)

    @app.get("/squads/{squad_id}")
    async def get_squad(squad_id: UUID, request: Request) -> SquadResponse:
        """Return a squad with members in join order."""
        state_container: AppContainer = request.app.state.container
        squad = state_container.squad_service.get_squad(squad_id)
        if squad is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return _squad_response(squad)

    @app.post("/squads/{squad_id}/members")
    async def join_squad(
        squad_id: UUID, payload: JoinSquadRequest, request: Request
    ) -> MemberResponse:
        """Add a user to a squad."""
        state_container: AppContainer = request.app.state.container
        result = state_container.squad_service.join_squad(
            squad_id, payload.user_id, payload.username, payload.avatar_url
        )
        _raise_for_failure(result)
        return _member_response(result.value)

    @app.delete("/squads/{squad_id}/members/{user_id}")
    async def leave_squad(
        squad_id: UUID, user_id: UUID, request: Request
    ) -> dict[str, str]:
        """Remove a user from a squad."""
        state_container: AppContainer = request.app.state.container
        result = state_container.squad_service.leave_squad(squad_id, user_id)
        _raise_for_failure(result)
        return {"status": "ok"}

    @app.get("/squads/{squad_id}/ranking")
    async def squad_ranking(squad_id: UUID, request: Request) -> list[MemberResponse]:
        """Return members ordered by consistency score."""
        state_container: AppContainer = request.app.state.container
        ranked = state_container.squad_service.ranked_members(squad_id)
        if ranked is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return [
            _member_response(member, rank=position)
            for position, member in enumerate(ranked, start=1)
        ]

    @app.get("/squads/{squad_id}/members/{user_id}/metrics")
    async def member_metrics(
        squad_id: UUID, user_id: UUID, request: Request
    ) -> MetricsResponse:
        """Return a member's metrics with their squad rank."""
        state_container: AppContainer = request.app.state.container
        metrics = state_container.squad_service.member_metrics(squad_id, user_id)
        if metrics is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return _metrics_response(metrics)

    @app.post("/reactions")
    async def react(payload: ReactionRequest, request: Request) -> ReactResponse:
        """Create, replace or toggle off a reaction."""
        state_container: AppContainer = request.app.state.container
        result = state_container.reaction_service.react(
            payload.user_id,
            payload.target_user_id,
            payload.target_id,
            payload.type,
            payload.context,
        )
        _raise_for_failure(result)
        outcome = result.value
        return ReactResponse(
            action=outcome.action.value,
            reaction=(
                _reaction_response(outcome.reaction) if outcome.reaction else None
            ),
        )

    @app.get("/reactions/{target_id}")
    async def list_reactions(
        target_id: str, request: Request
    ) -> list[ReactionResponse]:
        """Return reactions to an item, newest first."""
        state_container: AppContainer = request.app.state.container
        reactions = state_container.reaction_service.reactions_for(target_id)
        return [_reaction_response(reaction) for reaction in reactions]

    return app


def _raise_for_failure(result: OperationResult) -> None:
    """Translate an expected failure into an HTTP error."""
    if result.ok:
        return
    status_code = _ERROR_STATUS.get(result.error, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(
        status_code=status_code,
        detail={"error": str(result.error), "reason": result.reason},
    )


def _metrics_response(metrics: ConsistencyMetrics) -> MetricsResponse:
    return MetricsResponse(
        user_id=metrics.user_id,
        logs_this_week=metrics.logs_this_week,
        logs_last_week=metrics.logs_last_week,
        current_streak=metrics.current_streak,
        longest_streak=metrics.longest_streak,
        consistency_score=metrics.consistency_score,
        rank=metrics.rank,
    )


def _milestone_response(milestone: Milestone, achieved: bool) -> MilestoneResponse:
    return MilestoneResponse(
        threshold_days=milestone.threshold_days,
        name=milestone.name,
        title=milestone.title,
        icon=milestone.icon,
        achieved=achieved,
    )


def _freeze_response(freeze: StreakFreeze) -> FreezeResponse:
    return FreezeResponse(
        id=freeze.id,
        days_remaining=freeze.days_remaining,
        activated_at=freeze.activated_at,
        expires_at=freeze.expires_at,
    )


def _member_response(member: SquadMember, rank: int | None = None) -> MemberResponse:
    return MemberResponse(
        user_id=member.user_id,
        username=member.username,
        avatar_url=member.avatar_url,
        consistency_score=member.consistency_score,
        streak=member.streak,
        joined_at=member.joined_at,
        rank=rank,
    )


def _squad_response(squad: Squad) -> SquadResponse:
    return SquadResponse(
        id=squad.id,
        owner_id=squad.owner_id,
        members=[_member_response(member) for member in squad.members],
        created_at=squad.created_at,
        updated_at=squad.updated_at,
    )


def _reaction_response(reaction: Reaction) -> ReactionResponse:
    return ReactionResponse(
        id=reaction.id,
        user_id=reaction.user_id,
        target_user_id=reaction.target_user_id,
        type=reaction.type,
        context=reaction.context,
        target_id=reaction.target_id,
        timestamp=reaction.timestamp,
    )
