from dependency_injector import containers, providers

from profileapi.config import Settings
from profileapi.core.rate_limit import SlidingWindowRateLimiter
from profileapi.database.connection import create_db_engine
from profileapi.repositories.memory_adapter import MemoryStorageAdapter
from profileapi.repositories.sql_adapter import SqlStorageAdapter
from profileapi.services.credits_service import CreditsService
from profileapi.services.daily_bonus_service import DailyBonusService
from profileapi.services.profile_service import ProfileService
from profileapi.services.storage_bridge import StorageBridge
from profileapi.utils.timezone_utils import utc_now


def _storage_backend(settings: Settings) -> str:
    return settings.STORAGE_BACKEND


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)
    clock = providers.Object(utc_now)


class RepositoryModule(containers.DeclarativeContainer):
    """Storage backend, chosen once from STORAGE_BACKEND."""

    config = providers.DependenciesContainer()

    engine = providers.Singleton(create_db_engine, settings=config.config)
    storage = providers.Selector(
        providers.Callable(_storage_backend, config.config),
        memory=providers.Singleton(MemoryStorageAdapter, clock=config.clock),
        sql=providers.Singleton(SqlStorageAdapter, engine=engine, clock=config.clock),
    )


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies."""

    config = providers.DependenciesContainer()
    repositories = providers.DependenciesContainer()

    daily_bonus_limiter = providers.Singleton(
        SlidingWindowRateLimiter,
        window_seconds=config.config.provided.DAILY_BONUS_WINDOW_SECONDS,
        max_requests=config.config.provided.DAILY_BONUS_MAX_ATTEMPTS,
        clock=config.clock,
    )

    credits_service = providers.Factory(
        CreditsService,
        storage=repositories.storage,
        settings=config.config,
        clock=config.clock,
    )
    profile_service = providers.Factory(
        ProfileService,
        storage=repositories.storage,
        credits_service=credits_service,
        settings=config.config,
    )
    daily_bonus_service = providers.Factory(
        DailyBonusService,
        storage=repositories.storage,
        credits_service=credits_service,
        limiter=daily_bonus_limiter,
        settings=config.config,
        clock=config.clock,
    )
    storage_bridge = providers.Singleton(
        StorageBridge,
        allowed_origins=config.config.provided.cors_origins,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "profileapi.deps",
            "profileapi.routers.profile_router",
            "profileapi.routers.credits_router",
            "profileapi.routers.health_router",
            "profileapi.routers.bridge_router",
        ],
    )

    config = providers.Container(ConfigModule)
    repositories = providers.Container(RepositoryModule, config=config)
    services = providers.Container(
        ServiceModule, config=config, repositories=repositories
    )
