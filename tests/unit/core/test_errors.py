"""Tests for engine exceptions."""

import pytest

from rolegate.core.errors import (
    ActorNotFoundError,
    ConflictError,
    DuplicateRoleLevelError,
    InvalidPermissionIdError,
    InvalidPermissionReferenceError,
    NotFoundError,
    RoleGateError,
    RoleInUseError,
    SystemRoleProtectedError,
    ValidationError,
)


pytestmark = pytest.mark.unit


class TestRoleGateError:
    """Tests for the base exception."""

    def test_defaults(self) -> None:
        error = RoleGateError()

        assert error.message == "An unexpected error occurred"
        assert error.error_code == "internal_error"
        assert error.details == {}
        assert str(error) == error.message

    def test_overrides(self) -> None:
        error = RoleGateError("Boom", error_code="boom", details={"a": 1})

        assert (error.message, error.error_code, error.details) == ("Boom", "boom", {"a": 1})


class TestEngineErrors:
    """Tests for the domain-specific errors."""

    def test_actor_not_found(self) -> None:
        error = ActorNotFoundError("alice")

        assert isinstance(error, NotFoundError)
        assert error.actor_id == "alice"
        assert error.details == {"resource": "actor", "resource_id": "alice"}

    def test_role_in_use(self) -> None:
        error = RoleInUseError("role_1", ["alice", "bob"])

        assert isinstance(error, ConflictError)
        assert error.actor_ids == ["alice", "bob"]
        assert error.details == {"role_id": "role_1", "assigned_actors": 2}

    def test_duplicate_level(self) -> None:
        error = DuplicateRoleLevelError("root-b", "root-a")

        assert error.error_code == "duplicate_role_level"
        assert error.details["existing_role_id"] == "root-a"

    def test_invalid_reference_lists_each_unknown_id(self) -> None:
        error = InvalidPermissionReferenceError("manager", ["b:x", "a:x"])

        assert isinstance(error, ValidationError)
        assert error.unknown == ["a:x", "b:x"]
        assert [e["message"] for e in error.details["errors"]] == [
            "Unknown permission 'a:x'",
            "Unknown permission 'b:x'",
        ]

    def test_invalid_permission_id_message(self) -> None:
        error = InvalidPermissionIdError("nope")

        assert error.message == "Malformed permission id 'nope'"

    def test_system_role_protected(self) -> None:
        error = SystemRoleProtectedError("guest", "Nope")

        assert error.error_code == "system_role_protected"
        assert error.message == "Nope"
        assert error.details == {"role_id": "guest"}
