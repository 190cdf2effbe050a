"""Async database engine and session factory construction."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rolegate.config import Settings
from rolegate.core.database.base import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by the settings.

    Args:
        settings: Engine settings (database URL and echo flag)

    Returns:
        SQLAlchemy async engine
    """
    return create_async_engine(
        settings.async_database_url,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table registered on the declarative base.

    Intended for tests and first-run setups without migrations.
    """
    # Register the models with Base.metadata
    import rolegate.storage.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
