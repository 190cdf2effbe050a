"""Tests for configuration, locking, Redis pool and logging helpers."""

import asyncio

import pytest
import structlog
from pydantic import ValidationError

from rolegate.config import Settings
from rolegate.core.cache.redis import (
    RedisPoolHolder,
    _get_pool,
    close_redis_pool,
    configure_redis,
)
from rolegate.core.locks import KeyedLocks
from rolegate.core.logging import configure_logging


pytestmark = pytest.mark.unit


class TestSettings:
    """Tests for engine settings."""

    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)

        assert settings.default_role_id == "guest"
        assert settings.reconcile_backend == "inline"
        assert settings.async_database_url.startswith("postgresql+asyncpg://")
        assert not settings.is_production

    def test_environment_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ROLEGATE_DEFAULT_ROLE_ID", "visitor")
        monkeypatch.setenv("ROLEGATE_OWNER_ACTOR_IDS", '["founder"]')

        settings = Settings(_env_file=None)

        assert settings.default_role_id == "visitor"
        assert settings.owner_actor_ids == ["founder"]

    def test_non_postgres_url_untouched(self) -> None:
        settings = Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:")

        assert settings.async_database_url == "sqlite+aiosqlite:///:memory:"

    @pytest.mark.parametrize("field", ["decision_cache_max_entries", "reconcile_concurrency"])
    def test_sizes_must_be_positive(self, field: str) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: 0})

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, reconcile_backend="celery")

    def test_role_polling_can_be_disabled(self) -> None:
        settings = Settings(_env_file=None, role_poll_interval_seconds=None)

        assert settings.role_poll_interval_seconds is None

    @pytest.mark.parametrize("interval", [0, -5])
    def test_poll_interval_must_be_positive(self, interval: float) -> None:
        with pytest.raises(ValidationError):
            Settings(_env_file=None, role_poll_interval_seconds=interval)


class TestKeyedLocks:
    """Tests for per-key locking."""

    async def test_same_key_is_serialized(self) -> None:
        locks = KeyedLocks()
        order: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("role"):
                order.append(f"{name}:in")
                await asyncio.sleep(0)
                order.append(f"{name}:out")

        await asyncio.gather(worker("a"), worker("b"))

        assert order == ["a:in", "a:out", "b:in", "b:out"]

    async def test_different_keys_run_concurrently(self) -> None:
        locks = KeyedLocks()

        async with locks.hold("a"):
            assert locks.is_locked("a")
            assert not locks.is_locked("b")
            async with locks.hold("b"):
                assert locks.is_locked("b")

    async def test_unused_locks_are_dropped(self) -> None:
        locks = KeyedLocks()

        async with locks.hold("a"):
            assert len(locks) == 1

        assert len(locks) == 0

    async def test_released_on_error(self) -> None:
        locks = KeyedLocks()

        with pytest.raises(RuntimeError):
            async with locks.hold("a"):
                raise RuntimeError("boom")

        assert not locks.is_locked("a")
        assert len(locks) == 0


class TestRedisPool:
    """Tests for Redis pool management."""

    @pytest.fixture(autouse=True)
    def reset_pool(self):
        RedisPoolHolder.pool = None
        RedisPoolHolder.url = None
        yield
        RedisPoolHolder.pool = None
        RedisPoolHolder.url = None

    def test_unconfigured_pool(self) -> None:
        with pytest.raises(RuntimeError, match="not configured"):
            _get_pool()

    def test_pool_is_reused(self) -> None:
        configure_redis("redis://localhost:6379/0")

        assert _get_pool() is _get_pool()

    async def test_close_resets_pool(self) -> None:
        configure_redis("redis://localhost:6379/0")
        _get_pool()

        await close_redis_pool()

        assert RedisPoolHolder.pool is None


class TestConfigureLogging:
    """Tests for structlog configuration."""

    def test_production_renders_json(self) -> None:
        configure_logging(Settings(_env_file=None, environment="production"))

        processors = structlog.get_config()["processors"]

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_development_renders_console(self) -> None:
        configure_logging(Settings(_env_file=None, log_level="debug"))

        processors = structlog.get_config()["processors"]

        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
