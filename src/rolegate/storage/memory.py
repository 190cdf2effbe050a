"""Dictionary-backed storage for tests and embedded use."""

from collections.abc import Sequence

from rolegate.permissions.models import (
    ActorRoleAssignment,
    DataScope,
    Permission,
    Role,
)


class InMemoryStorage:
    """Keeps every record in process memory.

    Role and assignment values are immutable models, so handing them out
    without copying is safe.
    """

    def __init__(self) -> None:
        self.permissions: dict[str, Permission] = {}
        self.roles: dict[str, Role] = {}
        self.assignments: dict[str, ActorRoleAssignment] = {}
        self.data_scopes: dict[str, DataScope] = {}
        # role_id -> actor ids, maintained alongside assignments
        self._actors_by_role: dict[str, set[str]] = {}

    async def load_catalog(self) -> list[Permission]:
        return list(self.permissions.values())

    async def save_permission(self, permission: Permission) -> None:
        self.permissions[permission.id] = permission

    async def delete_permission(self, permission_id: str) -> None:
        self.permissions.pop(permission_id, None)

    async def load_roles(self) -> list[Role]:
        return list(self.roles.values())

    async def load_role(self, role_id: str) -> Role | None:
        return self.roles.get(role_id)

    async def save_role(self, role: Role) -> None:
        self.roles[role.id] = role

    async def delete_role(self, role_id: str) -> None:
        self.roles.pop(role_id, None)

    async def load_assignment(self, actor_id: str) -> ActorRoleAssignment | None:
        return self.assignments.get(actor_id)

    async def save_assignment(self, assignment: ActorRoleAssignment) -> None:
        previous = self.assignments.get(assignment.actor_id)
        if previous is not None:
            self._actors_by_role.get(previous.role_id, set()).discard(assignment.actor_id)
        self.assignments[assignment.actor_id] = assignment
        self._actors_by_role.setdefault(assignment.role_id, set()).add(assignment.actor_id)

    async def delete_assignment(self, actor_id: str) -> None:
        previous = self.assignments.pop(actor_id, None)
        if previous is not None:
            self._actors_by_role.get(previous.role_id, set()).discard(actor_id)

    async def list_actor_ids_for_role(self, role_id: str) -> list[str]:
        return sorted(self._actors_by_role.get(role_id, ()))

    async def reassign_role(self, from_role_id: str, to_role_id: str) -> Sequence[str]:
        moved = await self.list_actor_ids_for_role(from_role_id)
        for actor_id in moved:
            assignment = self.assignments[actor_id]
            await self.save_assignment(
                assignment.model_copy(
                    update={"role_id": to_role_id, "permission_snapshot": None}
                )
            )
        return moved

    async def load_data_scope(self, actor_id: str) -> DataScope | None:
        return self.data_scopes.get(actor_id)

    async def save_data_scope(self, scope: DataScope) -> None:
        self.data_scopes[scope.actor_id] = scope
