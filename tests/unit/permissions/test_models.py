"""Tests for permission engine domain models."""

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from factories.permissions import AssignmentFactory, RoleFactory
from rolegate.permissions.models import (
    DataScope,
    DataScopeLevel,
    Permission,
    Role,
    parse_permission_id,
)


pytestmark = pytest.mark.unit


class TestParsePermissionId:
    """Tests for splitting permission ids."""

    def test_simple_id(self) -> None:
        assert parse_permission_id("project:write") == ("project", "write")

    def test_namespaced_action_keeps_remaining_segments(self) -> None:
        assert parse_permission_id("project:task:assign") == ("project", "task:assign")

    @pytest.mark.parametrize("raw", ["project", "", ":write", "project:", "Project:Write", "a b:c"])
    def test_rejects_malformed_ids(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_permission_id(raw)


class TestPermission:
    """Tests for the Permission model."""

    def test_resource_and_action(self) -> None:
        permission = Permission(id="project:member:add")

        assert permission.resource == "project"
        assert permission.action == "member:add"

    def test_invalid_id_fails_validation(self) -> None:
        with pytest.raises(ValidationError):
            Permission(id="not-an-id")

    def test_is_immutable(self) -> None:
        permission = Permission(id="project:read")

        with pytest.raises(ValidationError):
            permission.name = "changed"  # type: ignore[misc]


class TestRole:
    """Tests for the Role model."""

    def test_level_zero_is_super(self) -> None:
        assert RoleFactory.build(level=0).is_super
        assert not RoleFactory.build(level=1).is_super

    def test_grants_checks_stored_set(self) -> None:
        role = RoleFactory.build(permissions=frozenset({"project:read"}))

        assert role.grants("project:read")
        assert not role.grants("project:write")

    @pytest.mark.parametrize("level", [-1, 100])
    def test_level_out_of_range(self, level: int) -> None:
        with pytest.raises(ValidationError):
            Role(id="r", name="R", level=level)

    def test_name_length_limit(self) -> None:
        with pytest.raises(ValidationError):
            Role(id="r", name="x" * 101, level=5)


class TestActorRoleAssignment:
    """Tests for assignment expiry."""

    def test_without_expiry_never_expires(self) -> None:
        assignment = AssignmentFactory.build()

        assert not assignment.is_expired()
        assert assignment.is_active()

    def test_expired_at_exact_expiry(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assignment = AssignmentFactory.build(expires_at=now)

        assert assignment.is_expired(now)

    def test_active_before_expiry(self) -> None:
        now = datetime(2026, 1, 1, tzinfo=UTC)
        assignment = AssignmentFactory.build(expires_at=now + timedelta(seconds=1))

        assert not assignment.is_expired(now)


class TestDataScope:
    """Tests for data scope defaults."""

    def test_defaults_to_own(self) -> None:
        assert DataScope(actor_id="alice").scope == DataScopeLevel.OWN

    def test_accepts_string_levels(self) -> None:
        scope = DataScope(actor_id="alice", scope="department", department="sales")

        assert scope.scope is DataScopeLevel.DEPARTMENT
