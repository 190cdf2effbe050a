"""Default catalog and roles.

``bootstrap`` seeds an empty store exactly once. Completion is detected
by the presence of a level-0 role, which is written last; re-running it
against a seeded store is a no-op, and re-running it after an
interrupted seed fills in whatever is missing.
"""

from typing import TYPE_CHECKING, TypedDict

import structlog

from rolegate.core.constants import SUPER_ROLE_LEVEL, SYSTEM_ACTOR
from rolegate.permissions.models import Permission, Role, utcnow


if TYPE_CHECKING:
    from rolegate.storage.base import PermissionStorage


logger = structlog.get_logger()


# ============================================================
# Type Definitions
# ============================================================


class PermissionData(TypedDict):
    id: str
    name: str
    description: str
    category: str


class RoleData(TypedDict):
    id: str
    name: str
    description: str
    level: int
    permissions: list[str]


# ============================================================
# Default Data
# ============================================================

DEFAULT_PERMISSIONS: list[PermissionData] = [
    # Finance
    {"id": "finance:read", "name": "View finance", "description": "View financial records", "category": "finance"},
    {"id": "finance:write", "name": "Edit finance", "description": "Edit financial records", "category": "finance"},
    {"id": "finance:delete", "name": "Delete finance", "description": "Delete financial records", "category": "finance"},
    {"id": "finance:admin", "name": "Manage finance", "description": "Full finance administration", "category": "finance"},
    # Projects
    {"id": "project:read", "name": "View projects", "description": "View project records", "category": "project"},
    {"id": "project:write", "name": "Edit projects", "description": "Edit project records", "category": "project"},
    {"id": "project:delete", "name": "Delete projects", "description": "Delete project records", "category": "project"},
    {"id": "project:admin", "name": "Manage projects", "description": "Full project administration", "category": "project"},
    # Project work packages
    {"id": "project:package:read", "name": "View packages", "description": "View work packages", "category": "project"},
    {"id": "project:package:write", "name": "Edit packages", "description": "Edit work packages", "category": "project"},
    {"id": "project:package:delete", "name": "Delete packages", "description": "Delete work packages", "category": "project"},
    {"id": "project:package:create", "name": "Create packages", "description": "Create work packages", "category": "project"},
    # Project sub-packages
    {"id": "project:subpackage:read", "name": "View sub-packages", "description": "View sub-packages", "category": "project"},
    {"id": "project:subpackage:write", "name": "Edit sub-packages", "description": "Edit sub-packages", "category": "project"},
    {"id": "project:subpackage:delete", "name": "Delete sub-packages", "description": "Delete sub-packages", "category": "project"},
    {"id": "project:subpackage:create", "name": "Create sub-packages", "description": "Create sub-packages", "category": "project"},
    # Project tasks
    {"id": "project:task:read", "name": "View tasks", "description": "View tasks", "category": "project"},
    {"id": "project:task:write", "name": "Edit tasks", "description": "Edit tasks", "category": "project"},
    {"id": "project:task:delete", "name": "Delete tasks", "description": "Delete tasks", "category": "project"},
    {"id": "project:task:create", "name": "Create tasks", "description": "Create tasks", "category": "project"},
    {"id": "project:task:assign", "name": "Assign tasks", "description": "Assign tasks to actors", "category": "project"},
    # Project members
    {"id": "project:member:read", "name": "View members", "description": "View project members", "category": "project"},
    {"id": "project:member:write", "name": "Edit members", "description": "Edit project members", "category": "project"},
    {"id": "project:member:add", "name": "Add members", "description": "Add members to a project", "category": "project"},
    {"id": "project:member:remove", "name": "Remove members", "description": "Remove members from a project", "category": "project"},
    # Project settings
    {"id": "project:settings:read", "name": "View project settings", "description": "View project settings", "category": "project"},
    {"id": "project:settings:write", "name": "Edit project settings", "description": "Edit project settings", "category": "project"},
    # Users
    {"id": "user:read", "name": "View users", "description": "View user records", "category": "user"},
    {"id": "user:write", "name": "Edit users", "description": "Edit user records", "category": "user"},
    {"id": "user:delete", "name": "Delete users", "description": "Delete user records", "category": "user"},
    {"id": "user:admin", "name": "Manage users", "description": "Full user administration", "category": "user"},
    # Settings
    {"id": "settings:read", "name": "View settings", "description": "View system settings", "category": "settings"},
    {"id": "settings:write", "name": "Edit settings", "description": "Edit system settings", "category": "settings"},
    {"id": "settings:admin", "name": "Manage settings", "description": "Full settings administration", "category": "settings"},
    # System
    {"id": "system:read", "name": "View system", "description": "View system information", "category": "system"},
    {"id": "system:write", "name": "Edit system", "description": "Edit system configuration", "category": "system"},
    {"id": "system:admin", "name": "Manage system", "description": "Full system administration", "category": "system"},
    # Navigation entries
    {"id": "navigation:home", "name": "Home navigation", "description": "Show the home entry", "category": "navigation"},
    {"id": "navigation:project", "name": "Project navigation", "description": "Show the project entry", "category": "navigation"},
    {"id": "navigation:task", "name": "Task navigation", "description": "Show the task entry", "category": "navigation"},
    {"id": "navigation:account", "name": "Account navigation", "description": "Show the account entry", "category": "navigation"},
    {"id": "navigation:settings", "name": "Settings navigation", "description": "Show the settings entry", "category": "navigation"},
    # Dashboard
    {"id": "dashboard:read", "name": "View dashboard", "description": "View the system dashboard", "category": "dashboard"},
    # Notifications
    {"id": "notification:read", "name": "View notifications", "description": "View own notifications", "category": "notification"},
    {"id": "notification:write", "name": "Manage notifications", "description": "Manage notification settings", "category": "notification"},
]

_USER_PERMISSIONS = [
    "finance:read",
    "project:read", "project:write",
    "project:package:read", "project:package:write", "project:package:create",
    "project:subpackage:read", "project:subpackage:write", "project:subpackage:create",
    "project:task:read", "project:task:write", "project:task:create",
    "project:member:read",
    "project:settings:read",
    "navigation:home", "navigation:project", "navigation:task", "navigation:account",
    "dashboard:read",
    "notification:read",
]  # fmt: skip

DEFAULT_ROLES: list[RoleData] = [
    {
        "id": "owner",
        "name": "Owner",
        "description": "System owner with every permission",
        "level": 0,
        "permissions": [p["id"] for p in DEFAULT_PERMISSIONS],
    },
    {
        "id": "admin",
        "name": "Administrator",
        "description": "System administrator with most permissions",
        "level": 1,
        "permissions": [
            "finance:read", "finance:write", "finance:admin",
            "project:read", "project:write", "project:delete", "project:admin",
            "project:package:read", "project:package:write", "project:package:delete", "project:package:create",
            "project:subpackage:read", "project:subpackage:write", "project:subpackage:delete", "project:subpackage:create",
            "project:task:read", "project:task:write", "project:task:delete", "project:task:create", "project:task:assign",
            "project:member:read", "project:member:write", "project:member:add", "project:member:remove",
            "project:settings:read", "project:settings:write",
            "user:read", "user:write",
            "settings:read", "settings:write",
            "system:read",
            "navigation:home", "navigation:project", "navigation:task", "navigation:account", "navigation:settings",
            "dashboard:read",
            "notification:read", "notification:write",
        ],
    },
    {
        "id": "manager",
        "name": "Manager",
        "description": "Department manager",
        "level": 2,
        "permissions": [
            "finance:read", "finance:write",
            "project:read", "project:write",
            "project:package:read", "project:package:write", "project:package:create",
            "project:subpackage:read", "project:subpackage:write", "project:subpackage:create",
            "project:task:read", "project:task:write", "project:task:create", "project:task:assign",
            "project:member:read", "project:member:add",
            "project:settings:read",
            "user:read",
            "settings:read",
            "navigation:home", "navigation:project", "navigation:task", "navigation:account",
            "dashboard:read",
            "notification:read",
        ],
    },
    {
        "id": "user",
        "name": "User",
        "description": "Regular user with basic permissions",
        "level": 3,
        "permissions": _USER_PERMISSIONS,
    },
    {
        "id": "guest",
        "name": "Guest",
        "description": "Read-only visitor",
        "level": 99,
        "permissions": [
            "project:read",
            "project:package:read",
            "project:subpackage:read",
            "project:task:read",
            "project:member:read",
            "navigation:home",
        ],
    },
]  # fmt: skip


def default_permissions() -> list[Permission]:
    return [Permission(**data) for data in DEFAULT_PERMISSIONS]


def default_roles(created_by: str = SYSTEM_ACTOR) -> list[Role]:
    """Default roles, super-role last."""
    now = utcnow()
    roles = [
        Role(
            id=data["id"],
            name=data["name"],
            description=data["description"],
            level=data["level"],
            permissions=frozenset(data["permissions"]),
            is_custom=False,
            created_at=now,
            created_by=created_by,
            updated_at=now,
            updated_by=created_by,
        )
        for data in DEFAULT_ROLES
    ]
    return sorted(roles, key=lambda role: role.level == SUPER_ROLE_LEVEL)


async def bootstrap(storage: "PermissionStorage", *, created_by: str = SYSTEM_ACTOR) -> bool:
    """Seed the default catalog and roles if no super-role exists.

    Args:
        storage: Storage to seed
        created_by: Audit actor recorded on the seeded roles

    Returns:
        True if anything was seeded, False if the store was already seeded
    """
    roles = await storage.load_roles()
    if any(role.is_super for role in roles):
        logger.debug("bootstrap_skipped", reason="super_role_exists")
        return False

    existing_permissions = {p.id for p in await storage.load_catalog()}
    created_permissions = 0
    for permission in default_permissions():
        if permission.id not in existing_permissions:
            await storage.save_permission(permission)
            created_permissions += 1

    existing_roles = {role.id for role in roles}
    created_roles = 0
    for role in default_roles(created_by):
        if role.id not in existing_roles:
            await storage.save_role(role)
            created_roles += 1

    logger.info(
        "bootstrap_completed",
        permissions=created_permissions,
        roles=created_roles,
    )
    return True
