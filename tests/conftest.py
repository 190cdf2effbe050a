"""Pytest configuration and shared fixtures for engine tests."""

from collections.abc import AsyncGenerator, Generator

import pytest
import structlog

from factories.permissions import SMALL_CATALOG, SMALL_ROLES
from rolegate.config import Settings
from rolegate.permissions.engine import PermissionEngine
from rolegate.storage.memory import InMemoryStorage


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo any logging configuration a test installed."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def settings() -> Settings:
    """Settings for an engine over a pre-seeded store."""
    return Settings(
        _env_file=None,
        default_role_id="guest",
        owner_actor_ids=["founder"],
        bootstrap_on_start=False,
        reconcile_backend="inline",
        role_poll_interval_seconds=None,
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    """In-memory store seeded with a small catalog and four system roles."""
    store = InMemoryStorage()
    for permission in SMALL_CATALOG:
        store.permissions[permission.id] = permission
    for role in SMALL_ROLES:
        store.roles[role.id] = role
    return store


@pytest.fixture
async def engine(
    storage: InMemoryStorage, settings: Settings
) -> AsyncGenerator[PermissionEngine, None]:
    """A started engine over the seeded store.

    Yields:
        The engine; background work is drained before it is closed
    """
    permission_engine = PermissionEngine(storage, settings)
    await permission_engine.start()
    yield permission_engine
    await permission_engine.drain()
    await permission_engine.close()
