"""Shared plumbing for CLI commands.

Commands are synchronous typer callbacks; each one runs its async body
with ``asyncio.run`` inside an engine opened by ``open_engine``.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

from rolegate.config import Settings, get_settings
from rolegate.core.database import create_engine, create_schema, create_session_factory
from rolegate.core.logging import configure_logging
from rolegate.permissions.engine import PermissionEngine
from rolegate.storage.base import PermissionStorage
from rolegate.storage.sql import SqlAlchemyStorage


async def build_storage(
    settings: Settings,
    *,
    create_tables: bool = False,
) -> tuple[PermissionStorage, Callable[[], Awaitable[None]]]:
    """Build the SQL storage described by the settings.

    Returns:
        The storage and a coroutine function that releases it
    """
    engine = create_engine(settings)
    if create_tables:
        await create_schema(engine)
    return SqlAlchemyStorage(create_session_factory(engine)), engine.dispose


@asynccontextmanager
async def open_engine(
    *,
    bootstrap: bool = False,
    create_tables: bool = False,
) -> AsyncIterator[PermissionEngine]:
    """Open a started permission engine for the duration of a command.

    Background reconciliation triggered by the command is awaited before
    the engine is closed.
    """
    settings = get_settings()
    configure_logging(settings)

    storage, dispose = await build_storage(settings, create_tables=create_tables)
    engine = PermissionEngine(
        storage,
        settings.model_copy(
            update={"bootstrap_on_start": bootstrap, "role_poll_interval_seconds": None}
        ),
    )
    try:
        await engine.start()
        yield engine
        await engine.drain()
    finally:
        await engine.close()
        await dispose()
