"""Persistence interface of the permission engine.

The engine never talks to a database directly; it goes through an object
satisfying ``PermissionStorage``. Every method persists or returns whole
values, so a cancelled call never leaves a half-written record.
"""

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from rolegate.permissions.models import (
    ActorRoleAssignment,
    DataScope,
    Permission,
    Role,
)


@runtime_checkable
class PermissionStorage(Protocol):
    """Storage backend for permissions, roles, assignments and data scopes."""

    # Catalog
    async def load_catalog(self) -> list[Permission]: ...

    async def save_permission(self, permission: Permission) -> None: ...

    async def delete_permission(self, permission_id: str) -> None: ...

    # Roles
    async def load_roles(self) -> list[Role]: ...

    async def load_role(self, role_id: str) -> Role | None: ...

    async def save_role(self, role: Role) -> None: ...

    async def delete_role(self, role_id: str) -> None: ...

    # Assignments
    async def load_assignment(self, actor_id: str) -> ActorRoleAssignment | None: ...

    async def save_assignment(self, assignment: ActorRoleAssignment) -> None: ...

    async def delete_assignment(self, actor_id: str) -> None: ...

    async def list_actor_ids_for_role(self, role_id: str) -> list[str]: ...

    async def reassign_role(self, from_role_id: str, to_role_id: str) -> Sequence[str]:
        """Move every actor on ``from_role_id`` to ``to_role_id``.

        Snapshots of the moved assignments are cleared. Returns the ids of
        the moved actors.
        """
        ...

    # Data scopes
    async def load_data_scope(self, actor_id: str) -> DataScope | None: ...

    async def save_data_scope(self, scope: DataScope) -> None: ...
