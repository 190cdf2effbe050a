"""Role store.

Holds the canonical role definitions in memory, backed by storage.
Writes are serialized per role, validated against the catalog before
anything is persisted, and announced on the event bus once the
in-memory view reflects them.
"""

import uuid
from collections.abc import Iterable
from contextlib import AsyncExitStack
from typing import TYPE_CHECKING

import structlog

from rolegate.core.constants import (
    CUSTOM_ROLE_ID_HEX_LENGTH,
    CUSTOM_ROLE_ID_PREFIX,
    DEFAULT_ROLE_LEVEL,
    MAX_ROLE_ID_LENGTH,
    MAX_ROLE_NAME_LENGTH,
    SUPER_ROLE_LEVEL,
)
from rolegate.core.errors import (
    DuplicateRoleLevelError,
    InvalidPermissionReferenceError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
    ValidationError,
)
from rolegate.core.locks import KeyedLocks
from rolegate.permissions.catalog import PermissionCatalog
from rolegate.permissions.events import AssignmentChanged, EventBus, RoleChanged
from rolegate.permissions.models import Role, utcnow


if TYPE_CHECKING:
    from rolegate.storage.base import PermissionStorage


logger = structlog.get_logger()

# Serializes writes that could create a second super-role
_SUPER_ROLE_LOCK = "__super_role__"


def _decision_relevant(before: Role, after: Role) -> bool:
    return before.permissions != after.permissions or before.level != after.level


class RoleStore:
    """Canonical role definitions.

    Reads are served from memory without locking. ``list()`` returns an
    explicit ordered collection rather than exposing the underlying dict.
    """

    def __init__(
        self,
        storage: "PermissionStorage",
        catalog: PermissionCatalog,
        bus: EventBus,
    ) -> None:
        self._storage = storage
        self._catalog = catalog
        self._bus = bus
        self._roles: dict[str, Role] = {}
        self._locks = KeyedLocks()

    async def load(self) -> None:
        """Replace the in-memory view with the stored roles."""
        roles = await self._storage.load_roles()
        self._roles = {role.id: role for role in roles}
        logger.info("roles_loaded", roles=len(self._roles))

    def get(self, role_id: str) -> Role | None:
        return self._roles.get(role_id)

    def super_role(self) -> Role | None:
        """The level-0 role, if one exists."""
        for role in self._roles.values():
            if role.is_super:
                return role
        return None

    def with_level(self, level: int) -> Role | None:
        """The first role (by id) with the given level."""
        matches = sorted(
            (role for role in self._roles.values() if role.level == level),
            key=lambda role: role.id,
        )
        return matches[0] if matches else None

    def default_role(self, role_id: str | None = None) -> Role | None:
        """The role substituted for actors without an active assignment.

        Args:
            role_id: Configured default role id; when None the
                least-privileged level (99) is used
        """
        if role_id is not None:
            return self._roles.get(role_id)
        return self.with_level(DEFAULT_ROLE_LEVEL)

    def __len__(self) -> int:
        return len(self._roles)

    def validate(self, role: Role, known_ids: Iterable[str] | None = None) -> None:
        """Check a role against the store's integrity rules without writing.

        Args:
            role: The role about to be written
            known_ids: Permission ids to validate against (defaults to the catalog)

        Raises:
            ValidationError: If the id or name is unusable
            InvalidPermissionReferenceError: If a permission is unknown
            DuplicateRoleLevelError: If a second super-role would be created
            SystemRoleProtectedError: If a system role's identity would change
        """
        errors = []
        if not role.id or len(role.id) > MAX_ROLE_ID_LENGTH:
            errors.append({"field": "id", "message": "Role id must be 1-100 characters"})
        if not role.name.strip() or len(role.name) > MAX_ROLE_NAME_LENGTH:
            errors.append({"field": "name", "message": "Role name must be 1-100 characters"})
        if errors:
            raise ValidationError("Invalid role", errors=errors)

        if known_ids is None:
            unknown = self._catalog.unknown_ids(role.permissions)
        else:
            unknown = sorted(role.permissions - set(known_ids))
        if unknown:
            raise InvalidPermissionReferenceError(role.id, unknown)

        if role.level == SUPER_ROLE_LEVEL:
            existing_super = self.super_role()
            if existing_super is not None and existing_super.id != role.id:
                raise DuplicateRoleLevelError(role.id, existing_super.id)

        existing = self._roles.get(role.id)
        if existing is not None and not existing.is_custom:
            if (
                role.name != existing.name
                or role.level != existing.level
                or role.is_custom
            ):
                raise SystemRoleProtectedError(
                    role.id,
                    "Only the permissions of a system role can be changed",
                )

    async def upsert(self, role: Role, *, updated_by: str | None = None) -> Role:
        """Create or replace a role.

        When the permissions or level of an existing role change, a
        ``RoleChanged`` event is published. Subscribers (cache
        invalidation) have run by the time this returns.

        Args:
            role: The full role definition
            updated_by: Audit actor

        Returns:
            The stored role with audit fields filled in
        """
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(self._locks.hold(role.id))
            if role.level == SUPER_ROLE_LEVEL:
                await stack.enter_async_context(self._locks.hold(_SUPER_ROLE_LOCK))

            self.validate(role)
            previous = self._roles.get(role.id)
            now = utcnow()
            actor = updated_by or role.updated_by
            stored = role.model_copy(
                update={
                    "permissions": frozenset(role.permissions),
                    "created_at": previous.created_at if previous else role.created_at,
                    "created_by": previous.created_by if previous else (role.created_by or actor),
                    "updated_at": now,
                    "updated_by": actor,
                }
            )
            await self._storage.save_role(stored)
            self._roles[stored.id] = stored

        logger.info(
            "role_upserted",
            role_id=stored.id,
            level=stored.level,
            permissions=len(stored.permissions),
            created=previous is None,
        )

        if previous is not None and _decision_relevant(previous, stored):
            await self._bus.publish(RoleChanged(role_id=stored.id))

        return stored

    async def delete(
        self,
        role_id: str,
        reassign_to: str | None = None,
        *,
        deleted_by: str | None = None,
    ) -> list[str]:
        """Delete a custom role.

        Args:
            role_id: Role to delete
            reassign_to: Role that assigned actors are moved to first
            deleted_by: Audit actor

        Returns:
            Ids of the actors that were reassigned

        Raises:
            RoleNotFoundError: If either role does not exist
            SystemRoleProtectedError: If the role is a system role
            RoleInUseError: If actors hold the role and no target is given
        """
        role = self._roles.get(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        if not role.is_custom:
            raise SystemRoleProtectedError(role_id, "System roles cannot be deleted")
        if reassign_to is not None:
            if reassign_to == role_id:
                raise ValidationError(
                    "Cannot reassign actors to the role being deleted",
                    errors=[{"field": "reassign_to", "message": "Must differ from role_id"}],
                )
            if reassign_to not in self._roles:
                raise RoleNotFoundError(reassign_to)

        moved: list[str] = []
        async with self._locks.hold(role_id):
            actor_ids = await self._storage.list_actor_ids_for_role(role_id)
            if actor_ids:
                if reassign_to is None:
                    raise RoleInUseError(role_id, actor_ids)
                moved = list(await self._storage.reassign_role(role_id, reassign_to))
            await self._storage.delete_role(role_id)
            self._roles.pop(role_id, None)

        logger.info(
            "role_deleted",
            role_id=role_id,
            reassigned_to=reassign_to,
            reassigned_actors=len(moved),
            deleted_by=deleted_by,
        )

        for actor_id in moved:
            await self._bus.publish(
                AssignmentChanged(
                    actor_id=actor_id,
                    role_id=reassign_to,
                    previous_role_id=role_id,
                )
            )
        await self._bus.publish(RoleChanged(role_id=role_id, deleted=True))
        return moved

    async def create_custom_role(
        self,
        name: str,
        *,
        level: int,
        permissions: Iterable[str] = (),
        description: str = "",
        created_by: str | None = None,
    ) -> Role:
        """Create an administrator-defined role with a generated id.

        Raises:
            ValidationError: If the level is the super-role level
        """
        if level == SUPER_ROLE_LEVEL:
            raise ValidationError(
                "Custom roles cannot use the super-role level",
                errors=[{"field": "level", "message": "Must be greater than 0"}],
            )
        role = Role(
            id=f"{CUSTOM_ROLE_ID_PREFIX}{uuid.uuid4().hex[:CUSTOM_ROLE_ID_HEX_LENGTH]}",
            name=name,
            description=description,
            level=level,
            permissions=frozenset(permissions),
            is_custom=True,
            created_by=created_by,
        )
        return await self.upsert(role, updated_by=created_by)

    def _require_custom(self, role_id: str) -> Role:
        role = self._roles.get(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        if not role.is_custom:
            raise SystemRoleProtectedError(role_id, "System roles cannot be renamed or redescribed")
        return role

    async def rename_role(self, role_id: str, name: str, *, updated_by: str | None = None) -> Role:
        role = self._require_custom(role_id)
        return await self.upsert(role.model_copy(update={"name": name}), updated_by=updated_by)

    async def describe_role(
        self, role_id: str, description: str, *, updated_by: str | None = None
    ) -> Role:
        role = self._require_custom(role_id)
        return await self.upsert(
            role.model_copy(update={"description": description}), updated_by=updated_by
        )

    async def set_permissions(
        self,
        role_id: str,
        permissions: Iterable[str],
        *,
        updated_by: str | None = None,
    ) -> Role:
        """Replace the permission set of any role, system roles included.

        Raises:
            RoleNotFoundError: If the role does not exist
            InvalidPermissionReferenceError: If a permission is unknown
        """
        role = self._roles.get(role_id)
        if role is None:
            raise RoleNotFoundError(role_id)
        return await self.upsert(
            role.model_copy(update={"permissions": frozenset(permissions)}),
            updated_by=updated_by,
        )

    async def reload(self, role_id: str) -> bool:
        """Refresh one role from storage.

        Returns:
            True if the role's permissions or level differ from the
            previous in-memory value (or it appeared or disappeared)
        """
        async with self._locks.hold(role_id):
            stored = await self._storage.load_role(role_id)
            current = self._roles.get(role_id)
            if stored is None:
                self._roles.pop(role_id, None)
                return current is not None
            self._roles[role_id] = stored
        return current is None or _decision_relevant(current, stored)

    async def reload_all(self) -> list[str]:
        """Refresh every role from storage.

        Returns:
            Ids of the roles whose permissions or level changed, that
            appeared, or that were removed
        """
        stored = {role.id: role for role in await self._storage.load_roles()}
        changed = [
            role_id
            for role_id in sorted(set(stored) | set(self._roles))
            if role_id not in stored
            or role_id not in self._roles
            or _decision_relevant(self._roles[role_id], stored[role_id])
        ]
        self._roles = stored
        if changed:
            logger.info("roles_reloaded", changed=changed)
        return changed

    # Defined last so the name does not shadow ``list`` in the annotations above
    def list(self) -> list[Role]:
        """All roles ordered by level, then id."""
        return sorted(self._roles.values(), key=lambda role: (role.level, role.id))
