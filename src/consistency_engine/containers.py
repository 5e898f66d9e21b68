"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from consistency_engine.adapters.supabase_activity_repository import (
    SupabaseActivityRepository,
)
from consistency_engine.adapters.supabase_freeze_repository import (
    SupabaseFreezeRepository,
)
from consistency_engine.adapters.supabase_reaction_repository import (
    SupabaseReactionRepository,
)
from consistency_engine.adapters.supabase_squad_repository import (
    SupabaseSquadRepository,
)
from consistency_engine.adapters.supabase_wallet_repository import (
    SupabaseWalletRepository,
)
from consistency_engine.config import Settings
from consistency_engine.services.freezes import FreezeService
from consistency_engine.services.metrics import MetricsService
from consistency_engine.services.reactions import ReactionService
from consistency_engine.services.rewards import ReactionRewardService
from consistency_engine.services.squads import SquadService
from consistency_engine.services.wallet import WalletService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    metrics_service: MetricsService
    freeze_service: FreezeService
    wallet_service: WalletService
    squad_service: SquadService
    reaction_service: ReactionService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    activity_repository = SupabaseActivityRepository(supabase_client)
    freeze_repository = SupabaseFreezeRepository(supabase_client)
    squad_repository = SupabaseSquadRepository(supabase_client)
    reaction_repository = SupabaseReactionRepository(supabase_client)
    wallet_repository = SupabaseWalletRepository(supabase_client)

    wallet_service = WalletService(wallet_repository)
    metrics_service = MetricsService(
        activity_repository=activity_repository,
        freeze_repository=freeze_repository,
        timezone_name=resolved_settings.default_timezone,
    )
    freeze_service = FreezeService(
        repository=freeze_repository,
        wallet_service=wallet_service,
        cost_per_day=resolved_settings.freeze_cost_coins,
    )
    squad_service = SquadService(
        repository=squad_repository,
        metrics_service=metrics_service,
        max_members=resolved_settings.squad_max_members,
        recompute_workers=resolved_settings.recompute_workers,
    )
    reward_service = ReactionRewardService(
        wallet_service=wallet_service,
        coins_per_reaction=resolved_settings.coins_per_reaction,
        daily_cap=resolved_settings.reaction_daily_coin_cap,
    )
    reaction_service = ReactionService(
        repository=reaction_repository,
        squad_repository=squad_repository,
        reward_service=reward_service,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        metrics_service=metrics_service,
        freeze_service=freeze_service,
        wallet_service=wallet_service,
        squad_service=squad_service,
        reaction_service=reaction_service,
        close_resources=close_resources,
    )
