from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings
from .domain.repositories import TrustScoreHook
from .infrastructure.repositories import SqlAlchemyUnitOfWork
from .models import Base
from .usecases.reservations import ReservationEngine


def build_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    settings = settings or get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_pre_ping=True,
        pool_recycle=3600,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def create_schema(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def build_reservation_engine(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    trust_hook: Optional[TrustScoreHook] = None,
) -> ReservationEngine:
    """Wire a ReservationEngine onto the configured database."""
    settings = settings or get_settings()
    if session_factory is None:
        session_factory = build_session_factory(build_engine(settings))
    factory = session_factory

    def uow_factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(factory, default_timezone=settings.spot_timezone)

    return ReservationEngine(uow_factory, policy=settings.policy, trust_hook=trust_hook)
