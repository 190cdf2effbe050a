"""Tests for the permission catalog."""

import pytest

from rolegate.core.errors import (
    DuplicatePermissionError,
    InvalidPermissionIdError,
    InvalidPermissionReferenceError,
    UnknownPermissionError,
)
from rolegate.permissions.catalog import PermissionCatalog, validate_permission_id
from rolegate.permissions.engine import PermissionEngine
from rolegate.permissions.events import RoleChanged
from rolegate.permissions.models import Permission, PermissionId, Role
from rolegate.storage.memory import InMemoryStorage


pytestmark = pytest.mark.unit


class TestValidatePermissionId:
    """Tests for id format validation."""

    def test_accepts_namespaced_id(self) -> None:
        assert validate_permission_id("project:task:assign") == "project:task:assign"

    def test_rejects_missing_action(self) -> None:
        with pytest.raises(InvalidPermissionIdError) as exc_info:
            validate_permission_id("project")

        assert exc_info.value.details["permission_id"] == "project"

    def test_rejects_overlong_id(self) -> None:
        with pytest.raises(InvalidPermissionIdError):
            validate_permission_id("a:" + "b" * 200)


class TestPermissionCatalog:
    """Tests for catalog reads and registration."""

    @pytest.fixture
    async def catalog(self, storage: InMemoryStorage) -> PermissionCatalog:
        catalog = PermissionCatalog(storage)
        await catalog.load()
        return catalog

    async def test_load_reads_storage(self, catalog: PermissionCatalog) -> None:
        assert len(catalog) == 5
        assert "project:write" in catalog
        assert catalog.exists("finance:read")
        assert catalog.get("missing:read") is None

    async def test_list_orders_by_category_then_id(self, catalog: PermissionCatalog) -> None:
        ids = [p.id for p in catalog.list()]

        assert ids == [
            "user:read",
            "finance:read",
            "project:delete",
            "project:read",
            "project:write",
        ]
        assert catalog.categories() == ["user", "finance", "project"]

    async def test_permission_id_returns_typed_id(self, catalog: PermissionCatalog) -> None:
        permission_id = catalog.permission_id("project:read")

        assert isinstance(permission_id, PermissionId)
        assert permission_id == "project:read"
        assert catalog.permission_id(permission_id) is permission_id

    async def test_permission_id_rejects_malformed(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(InvalidPermissionIdError):
            catalog.permission_id("project")

    async def test_permission_id_rejects_unregistered(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(UnknownPermissionError) as exc_info:
            catalog.permission_id("project:archive")

        assert exc_info.value.error_code == "unknown_permission"

    async def test_unknown_ids(self, catalog: PermissionCatalog) -> None:
        assert catalog.unknown_ids(["project:read", "b:x", "a:x", "a:x"]) == ["a:x", "b:x"]

    async def test_register_persists(
        self, catalog: PermissionCatalog, storage: InMemoryStorage
    ) -> None:
        await catalog.register(Permission(id="project:archive", category="project"))

        assert "project:archive" in catalog
        assert "project:archive" in storage.permissions

    async def test_register_duplicate_fails(self, catalog: PermissionCatalog) -> None:
        with pytest.raises(DuplicatePermissionError):
            await catalog.register(Permission(id="project:read"))

    async def test_ids_is_a_snapshot(self, catalog: PermissionCatalog) -> None:
        before = catalog.ids()
        await catalog.register(Permission(id="project:archive"))

        assert "project:archive" not in before
        assert "project:archive" in catalog.ids()


class TestApplyBatch:
    """Tests for all-or-nothing catalog changes."""

    async def test_retiring_referenced_id_fails_without_writes(
        self, engine: PermissionEngine, storage: InMemoryStorage
    ) -> None:
        with pytest.raises(InvalidPermissionReferenceError) as exc_info:
            await engine.apply_catalog_batch(
                register=[Permission(id="project:archive")],
                retire=["project:write"],
            )

        assert exc_info.value.role_id in {"admin", "manager"}
        assert "project:archive" not in storage.permissions
        assert "project:write" in storage.permissions
        assert "project:archive" not in engine.catalog

    async def test_retire_unknown_id_fails(self, engine: PermissionEngine) -> None:
        with pytest.raises(UnknownPermissionError):
            await engine.apply_catalog_batch(retire=["project:archive"])

    async def test_duplicate_inside_batch_fails(self, engine: PermissionEngine) -> None:
        with pytest.raises(DuplicatePermissionError):
            await engine.apply_catalog_batch(
                register=[Permission(id="project:archive"), Permission(id="project:archive")]
            )

    async def test_retire_together_with_role_updates(
        self, engine: PermissionEngine, storage: InMemoryStorage
    ) -> None:
        admin = engine.roles.get("admin")
        manager = engine.roles.get("manager")
        assert admin is not None and manager is not None

        await engine.apply_catalog_batch(
            register=[Permission(id="project:archive")],
            retire=["project:delete", "finance:read"],
            roles=[
                admin.model_copy(
                    update={
                        "permissions": frozenset(
                            {"project:read", "project:write", "project:archive", "user:read"}
                        )
                    }
                ),
                manager.model_copy(
                    update={"permissions": frozenset({"project:read", "project:write"})}
                ),
            ],
        )

        assert "project:delete" not in engine.catalog
        assert "finance:read" not in storage.permissions
        assert "project:archive" in engine.catalog
        assert storage.roles["admin"].permissions == frozenset(
            {"project:read", "project:write", "project:archive", "user:read"}
        )

    async def test_retire_strips_super_role_display_set(
        self, engine: PermissionEngine, storage: InMemoryStorage
    ) -> None:
        await engine.roles.set_permissions("owner", ["project:read", "user:read"])
        await engine.roles.set_permissions("admin", ["project:read"])

        await engine.apply_catalog_batch(retire=["user:read"])

        assert storage.roles["owner"].permissions == frozenset({"project:read"})

    async def test_new_role_may_reference_registered_id(self, engine: PermissionEngine) -> None:
        await engine.apply_catalog_batch(
            register=[Permission(id="report:read")],
            roles=[
                Role(
                    id="auditor",
                    name="Auditor",
                    level=4,
                    permissions=frozenset({"report:read"}),
                    is_custom=True,
                )
            ],
        )

        auditor = engine.roles.get("auditor")
        assert auditor is not None
        assert auditor.permissions == frozenset({"report:read"})

    async def test_changed_role_publishes_event(self, engine: PermissionEngine) -> None:
        events: list[RoleChanged] = []

        async def collect(event: RoleChanged) -> None:
            events.append(event)

        engine.bus.subscribe(RoleChanged, collect)
        manager = engine.roles.get("manager")
        assert manager is not None

        await engine.apply_catalog_batch(
            roles=[manager.model_copy(update={"permissions": frozenset({"project:read"})})]
        )

        assert [e.role_id for e in events] == ["manager"]
