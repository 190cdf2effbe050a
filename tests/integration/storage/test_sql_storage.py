"""Integration tests for the SQLAlchemy storage on SQLite."""

from collections.abc import AsyncGenerator
from datetime import timedelta
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from rolegate.config import Settings
from rolegate.core.database import create_schema, create_session_factory
from rolegate.permissions.bootstrap import DEFAULT_PERMISSIONS, bootstrap
from rolegate.permissions.engine import PermissionEngine
from rolegate.permissions.models import (
    ActorRoleAssignment,
    DataScope,
    DataScopeLevel,
    Permission,
    Role,
    utcnow,
)
from rolegate.storage.base import PermissionStorage
from rolegate.storage.sql import SqlAlchemyStorage


pytestmark = pytest.mark.integration


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite database; background tasks get their own connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'rolegate.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sql_storage(db_engine: AsyncEngine) -> SqlAlchemyStorage:
    return SqlAlchemyStorage(create_session_factory(db_engine))


class TestSqlAlchemyStorage:
    """Tests for each storage operation."""

    def test_satisfies_protocol(self, sql_storage: SqlAlchemyStorage) -> None:
        assert isinstance(sql_storage, PermissionStorage)

    async def test_permission_round_trip(self, sql_storage: SqlAlchemyStorage) -> None:
        permission = Permission(
            id="project:write", name="Edit projects", description="Edit", category="project"
        )

        await sql_storage.save_permission(permission)
        await sql_storage.save_permission(permission.model_copy(update={"name": "Edit"}))

        assert await sql_storage.load_catalog() == [permission.model_copy(update={"name": "Edit"})]

    async def test_role_links_follow_permission_set(self, sql_storage: SqlAlchemyStorage) -> None:
        for pid in ("project:read", "project:write", "finance:read"):
            await sql_storage.save_permission(Permission(id=pid))
        role = Role(
            id="manager",
            name="Manager",
            level=2,
            permissions=frozenset({"project:read", "project:write"}),
        )

        await sql_storage.save_role(role)
        await sql_storage.save_role(
            role.model_copy(update={"permissions": frozenset({"project:read", "finance:read"})})
        )

        stored = await sql_storage.load_role("manager")
        assert stored is not None
        assert stored.permissions == frozenset({"project:read", "finance:read"})
        assert stored.created_at == role.created_at
        assert stored.created_at.tzinfo is not None

    async def test_delete_permission_drops_links(self, sql_storage: SqlAlchemyStorage) -> None:
        await sql_storage.save_permission(Permission(id="project:read"))
        await sql_storage.save_permission(Permission(id="project:write"))
        await sql_storage.save_role(
            Role(
                id="manager",
                name="Manager",
                level=2,
                permissions=frozenset({"project:read", "project:write"}),
            )
        )

        await sql_storage.delete_permission("project:write")

        stored = await sql_storage.load_role("manager")
        assert stored is not None
        assert stored.permissions == frozenset({"project:read"})

    async def test_roles_ordered_by_level(self, sql_storage: SqlAlchemyStorage) -> None:
        await sql_storage.save_role(Role(id="guest", name="Guest", level=99))
        await sql_storage.save_role(Role(id="owner", name="Owner", level=0))

        assert [r.id for r in await sql_storage.load_roles()] == ["owner", "guest"]

        await sql_storage.delete_role("guest")
        assert await sql_storage.load_role("guest") is None

    async def test_assignment_round_trip(self, sql_storage: SqlAlchemyStorage) -> None:
        await sql_storage.save_role(Role(id="guest", name="Guest", level=99))
        expires_at = utcnow() + timedelta(days=1)
        assignment = ActorRoleAssignment(
            actor_id="alice",
            role_id="guest",
            assigned_by="admin-1",
            expires_at=expires_at,
            permission_snapshot=frozenset({"project:read"}),
        )

        await sql_storage.save_assignment(assignment)

        assert await sql_storage.load_assignment("alice") == assignment

        await sql_storage.save_assignment(assignment.model_copy(update={"permission_snapshot": None}))
        stored = await sql_storage.load_assignment("alice")
        assert stored is not None
        assert stored.permission_snapshot is None

        await sql_storage.delete_assignment("alice")
        assert await sql_storage.load_assignment("alice") is None

    async def test_reassign_role(self, sql_storage: SqlAlchemyStorage) -> None:
        await sql_storage.save_role(Role(id="writers", name="Writers", level=4, is_custom=True))
        await sql_storage.save_role(Role(id="guest", name="Guest", level=99))
        for actor_id in ("bob", "alice"):
            await sql_storage.save_assignment(
                ActorRoleAssignment(
                    actor_id=actor_id,
                    role_id="writers",
                    permission_snapshot=frozenset({"project:write"}),
                )
            )

        moved = await sql_storage.reassign_role("writers", "guest")

        assert list(moved) == ["alice", "bob"]
        assert await sql_storage.list_actor_ids_for_role("writers") == []
        assert await sql_storage.list_actor_ids_for_role("guest") == ["alice", "bob"]
        alice = await sql_storage.load_assignment("alice")
        assert alice is not None
        assert alice.permission_snapshot is None

    async def test_data_scope_round_trip(self, sql_storage: SqlAlchemyStorage) -> None:
        assert await sql_storage.load_data_scope("alice") is None

        scope = DataScope(actor_id="alice", scope=DataScopeLevel.DEPARTMENT, department="sales")
        await sql_storage.save_data_scope(scope)

        assert await sql_storage.load_data_scope("alice") == scope


class TestEngineOverSql:
    """The engine behaves the same over the SQL store."""

    async def test_bootstrap_is_idempotent(self, sql_storage: SqlAlchemyStorage) -> None:
        assert await bootstrap(sql_storage)
        assert not await bootstrap(sql_storage)

        assert len(await sql_storage.load_catalog()) == len(DEFAULT_PERMISSIONS)

    async def test_role_edit_reaches_snapshots(self, sql_storage: SqlAlchemyStorage) -> None:
        settings = Settings(_env_file=None, bootstrap_on_start=True, default_role_id="guest")

        async with PermissionEngine(sql_storage, settings) as engine:
            await engine.assign("alice", "manager")
            assert await engine.allow("alice", "project:write")

            manager = engine.roles.get("manager")
            assert manager is not None
            await engine.roles.set_permissions(
                "manager", manager.permissions - {"project:write"}
            )

            assert not await engine.allow("alice", "project:write")
            await engine.drain()

        stored = await sql_storage.load_assignment("alice")
        assert stored is not None
        assert stored.permission_snapshot is not None
        assert "project:write" not in stored.permission_snapshot
