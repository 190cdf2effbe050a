"""Role-based permission engine.

Build one ``PermissionEngine`` per process and pass it to call sites:

    engine = PermissionEngine(storage, settings)
    await engine.start()
    decision = await engine.allow(actor_id, Requirement.permission("project:write"))
"""

from rolegate.permissions.cache import DecisionCache
from rolegate.permissions.catalog import PermissionCatalog
from rolegate.permissions.decorators import (
    require,
    require_all_permissions,
    require_any_permission,
    require_permission,
    require_rank,
    require_super_role,
)
from rolegate.permissions.engine import PermissionEngine
from rolegate.permissions.events import AssignmentChanged, EventBus, RoleChanged
from rolegate.permissions.guard import DataScopeRule, Decision, Guard, Requirement
from rolegate.permissions.hierarchy import RoleLevel, at_least
from rolegate.permissions.models import (
    ActorRoleAssignment,
    DataScope,
    DataScopeLevel,
    FallbackReason,
    Permission,
    PermissionId,
    Role,
    parse_permission_id,
)
from rolegate.permissions.resolver import ResolvedPermissions


__all__ = [
    "ActorRoleAssignment",
    "AssignmentChanged",
    "DataScope",
    "DataScopeLevel",
    "DataScopeRule",
    "Decision",
    "DecisionCache",
    "EventBus",
    "FallbackReason",
    "Guard",
    "Permission",
    "PermissionCatalog",
    "PermissionEngine",
    "PermissionId",
    "Requirement",
    "ResolvedPermissions",
    "Role",
    "RoleChanged",
    "RoleLevel",
    "at_least",
    "parse_permission_id",
    "require",
    "require_all_permissions",
    "require_any_permission",
    "require_permission",
    "require_rank",
    "require_super_role",
]
