"""Tests for the rolegate CLI commands."""

import asyncio
from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from rolegate import __version__
from rolegate.cli import app
from rolegate.config import Settings
from rolegate.permissions.bootstrap import DEFAULT_PERMISSIONS, bootstrap
from rolegate.storage.memory import InMemoryStorage


runner = CliRunner()


@pytest.fixture
def cli_storage() -> Generator[InMemoryStorage, None, None]:
    """Route every command to one in-memory store.

    Yields:
        The store the commands read and write
    """
    storage = InMemoryStorage()
    settings = Settings(_env_file=None, default_role_id="guest")
    with (
        patch(
            "rolegate.commands._runtime.build_storage",
            new_callable=AsyncMock,
            return_value=(storage, AsyncMock()),
        ),
        patch("rolegate.commands._runtime.get_settings", return_value=settings),
        patch("rolegate.commands._runtime.configure_logging"),
    ):
        yield storage


@pytest.fixture
def seeded(cli_storage: InMemoryStorage) -> InMemoryStorage:
    asyncio.run(bootstrap(cli_storage))
    return cli_storage


class TestVersion:
    """Tests for the --version flag."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestBootstrapCommand:
    """Tests for rolegate bootstrap."""

    def test_seeds_store(self, cli_storage: InMemoryStorage) -> None:
        result = runner.invoke(app, ["bootstrap"])

        assert result.exit_code == 0
        assert f"{len(DEFAULT_PERMISSIONS)} permissions, 5 roles" in result.stdout
        assert "owner" in cli_storage.roles

    def test_second_run_keeps_edits(self, seeded: InMemoryStorage) -> None:
        seeded.roles["guest"] = seeded.roles["guest"].model_copy(
            update={"permissions": frozenset()}
        )

        result = runner.invoke(app, ["bootstrap"])

        assert result.exit_code == 0
        assert seeded.roles["guest"].permissions == frozenset()


class TestPermissionsCommand:
    """Tests for rolegate permissions."""

    def test_filter_by_category(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["permissions", "--category", "finance"])

        assert result.exit_code == 0
        assert "finance:read" in result.stdout
        assert "project:read" not in result.stdout

    def test_empty_catalog(self, cli_storage: InMemoryStorage) -> None:
        result = runner.invoke(app, ["permissions"])

        assert result.exit_code == 0
        assert "No permissions registered" in result.stdout


class TestRolesCommands:
    """Tests for rolegate roles."""

    def test_list(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["roles", "list"])

        assert result.exit_code == 0
        for role_id in ("owner", "admin", "manager", "user", "guest"):
            assert role_id in result.stdout

    def test_create(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(
            app,
            ["roles", "create", "Reviewer", "--level", "4", "-p", "project:read", "-p", "finance:read"],
        )

        assert result.exit_code == 0
        assert "Created role" in result.stdout
        custom = [r for r in seeded.roles.values() if r.is_custom]
        assert len(custom) == 1
        assert custom[0].permissions == frozenset({"project:read", "finance:read"})

    def test_create_with_unknown_permission(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(
            app, ["roles", "create", "Reviewer", "--level", "4", "-p", "project:archive"]
        )

        assert result.exit_code == 1
        assert "Error" in result.stdout
        assert not any(r.is_custom for r in seeded.roles.values())

    def test_set_permissions_reconciles_holders(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["assign", "alice", "guest"])

        result = runner.invoke(
            app, ["roles", "set-permissions", "guest", "-p", "project:read", "-p", "dashboard:read"]
        )

        assert result.exit_code == 0
        assert seeded.assignments["alice"].permission_snapshot == frozenset(
            {"project:read", "dashboard:read"}
        )

    def test_delete_system_role_refused(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["roles", "delete", "guest", "--force"])

        assert result.exit_code == 1
        assert "guest" in seeded.roles

    def test_delete_cancelled(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["roles", "delete", "guest"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.stdout

    def test_delete_with_reassign(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["roles", "create", "Reviewer", "--level", "4"])
        role_id = next(r.id for r in seeded.roles.values() if r.is_custom)
        runner.invoke(app, ["assign", "alice", role_id])

        result = runner.invoke(
            app, ["roles", "delete", role_id, "--reassign-to", "guest", "--force"]
        )

        assert result.exit_code == 0
        assert "1 actor(s) moved to guest" in result.stdout
        assert seeded.assignments["alice"].role_id == "guest"


class TestAssignCommand:
    """Tests for rolegate assign."""

    def test_assign(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["assign", "alice", "manager", "--by", "admin-1"])

        assert result.exit_code == 0
        assignment = seeded.assignments["alice"]
        assert assignment.role_id == "manager"
        assert assignment.assigned_by == "admin-1"
        assert assignment.permission_snapshot is not None

    def test_assign_with_expiry(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["assign", "alice", "manager", "-e", "7"])

        assert result.exit_code == 0
        assert "Expires at" in result.stdout
        assert seeded.assignments["alice"].expires_at is not None

    def test_unknown_role(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["assign", "alice", "director"])

        assert result.exit_code == 1
        assert "Role not found" in result.stdout


class TestCheckCommand:
    """Tests for rolegate check."""

    def test_allowed(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["assign", "alice", "manager"])

        result = runner.invoke(app, ["check", "alice", "project:write"])

        assert result.exit_code == 0
        assert "allowed" in result.stdout

    def test_denied(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["assign", "alice", "manager"])

        result = runner.invoke(app, ["check", "alice", "project:delete"])

        assert result.exit_code == 1
        assert "denied" in result.stdout

    def test_any_and_rank(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["assign", "alice", "manager"])

        result = runner.invoke(
            app, ["check", "alice", "project:delete", "project:read", "--any", "--min-level", "1"]
        )

        assert result.exit_code == 1
        assert "rank" in result.stdout

    def test_unknown_permission(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["check", "alice", "project:archive"])

        assert result.exit_code == 2
        assert "Error" in result.stdout

    def test_missing_default_role_is_an_error(self, seeded: InMemoryStorage) -> None:
        misconfigured = Settings(_env_file=None, default_role_id="no-such-role")

        with patch("rolegate.commands._runtime.get_settings", return_value=misconfigured):
            result = runner.invoke(app, ["check", "stranger", "project:read"])

        assert result.exit_code == 2
        assert "No default role is configured" in result.stdout
        assert "denied" not in result.stdout


class TestReconcileCommand:
    """Tests for rolegate reconcile."""

    def test_actor(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["assign", "alice", "manager"])
        seeded.assignments["alice"] = seeded.assignments["alice"].model_copy(
            update={"permission_snapshot": None}
        )

        result = runner.invoke(app, ["reconcile", "--actor", "alice"])

        assert result.exit_code == 0
        assert "1 snapshot(s) updated" in result.stdout

    def test_everything_already_consistent(self, seeded: InMemoryStorage) -> None:
        runner.invoke(app, ["assign", "alice", "manager"])

        result = runner.invoke(app, ["reconcile"])

        assert result.exit_code == 0
        assert "0 snapshot(s) updated" in result.stdout

    def test_role_and_actor_exclusive(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["reconcile", "--role", "manager", "--actor", "alice"])

        assert result.exit_code == 1


class TestMatrixCommand:
    """Tests for rolegate matrix."""

    def test_coverage(self, seeded: InMemoryStorage) -> None:
        result = runner.invoke(app, ["matrix", "--coverage"])

        assert result.exit_code == 0
        assert "100.00%" in result.stdout
