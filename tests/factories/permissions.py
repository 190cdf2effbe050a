"""Permission engine model factories for tests."""

from uuid import uuid4

from polyfactory.factories.pydantic_factory import ModelFactory

from rolegate.permissions.models import ActorRoleAssignment, Permission, Role


class PermissionFactory(ModelFactory):
    """Factory for creating test Permission instances."""

    __model__ = Permission

    @classmethod
    def id(cls) -> str:
        """Generate a unique, well-formed permission id."""
        return f"res{uuid4().hex[:6]}:read"

    @classmethod
    def category(cls) -> str:
        return "project"


class RoleFactory(ModelFactory):
    """Factory for creating test Role instances."""

    __model__ = Role

    @classmethod
    def id(cls) -> str:
        """Generate a unique role id."""
        return f"role_{uuid4().hex[:12]}"

    @classmethod
    def name(cls) -> str:
        return f"Test Role {uuid4().hex[:4]}"

    @classmethod
    def level(cls) -> int:
        """Default to a mid rank so the role never collides with the super-role."""
        return 5

    @classmethod
    def permissions(cls) -> frozenset[str]:
        return frozenset()

    @classmethod
    def is_custom(cls) -> bool:
        return True


class AssignmentFactory(ModelFactory):
    """Factory for creating test ActorRoleAssignment instances."""

    __model__ = ActorRoleAssignment

    @classmethod
    def actor_id(cls) -> str:
        return f"actor-{uuid4().hex[:8]}"

    @classmethod
    def expires_at(cls) -> None:
        """Default to a permanent assignment."""
        return None

    @classmethod
    def permission_snapshot(cls) -> None:
        """Default to a never-reconciled assignment."""
        return None


# Small fixture catalog: five permissions, four system roles
SMALL_CATALOG = [
    Permission(id="project:read", name="View projects", category="project"),
    Permission(id="project:write", name="Edit projects", category="project"),
    Permission(id="project:delete", name="Delete projects", category="project"),
    Permission(id="finance:read", name="View finance", category="finance"),
    Permission(id="user:read", name="View users", category="user"),
]

SMALL_ROLES = [
    Role(id="owner", name="Owner", level=0, permissions=frozenset({"project:read"})),
    Role(
        id="admin",
        name="Administrator",
        level=1,
        permissions=frozenset(
            {"project:read", "project:write", "project:delete", "finance:read", "user:read"}
        ),
    ),
    Role(
        id="manager",
        name="Manager",
        level=2,
        permissions=frozenset({"project:read", "project:write", "finance:read"}),
    ),
    Role(id="guest", name="Guest", level=99, permissions=frozenset({"project:read"})),
]
