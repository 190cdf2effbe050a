"""Actor assignment store.

Each actor has at most one assignment. Writes for one actor are
serialized; the permission snapshot field is written only through
``write_snapshot``, which the reconciler uses.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from rolegate.core.constants import MAX_ACTOR_ID_LENGTH
from rolegate.core.errors import ActorNotFoundError, RoleNotFoundError, ValidationError
from rolegate.core.locks import KeyedLocks
from rolegate.permissions.events import AssignmentChanged, EventBus
from rolegate.permissions.models import (
    ActorRoleAssignment,
    DataScope,
    DataScopeLevel,
    utcnow,
)
from rolegate.permissions.roles import RoleStore


if TYPE_CHECKING:
    from rolegate.storage.base import PermissionStorage


logger = structlog.get_logger()


def _validate_actor_id(actor_id: str) -> None:
    if not actor_id or len(actor_id) > MAX_ACTOR_ID_LENGTH:
        raise ValidationError(
            "Invalid actor id",
            errors=[{"field": "actor_id", "message": "Actor id must be 1-255 characters"}],
        )


class AssignmentStore:
    """Actor -> role assignments plus per-actor data scopes."""

    def __init__(
        self,
        storage: "PermissionStorage",
        roles: RoleStore,
        bus: EventBus,
        *,
        default_role_id: str | None = None,
        owner_actor_ids: Iterable[str] = (),
    ) -> None:
        self._storage = storage
        self._roles = roles
        self._bus = bus
        self._default_role_id = default_role_id
        self._owner_actor_ids = frozenset(owner_actor_ids)
        self._locks = KeyedLocks()

    async def get(self, actor_id: str) -> ActorRoleAssignment | None:
        """The stored assignment, expired or not."""
        return await self._storage.load_assignment(actor_id)

    async def get_active(
        self, actor_id: str, now: datetime | None = None
    ) -> ActorRoleAssignment | None:
        """The stored assignment, or None if absent or expired."""
        assignment = await self._storage.load_assignment(actor_id)
        if assignment is None or assignment.is_expired(now):
            return None
        return assignment

    async def actor_ids_for_role(self, role_id: str) -> list[str]:
        return await self._storage.list_actor_ids_for_role(role_id)

    async def assign(
        self,
        actor_id: str,
        role_id: str,
        *,
        assigned_by: str | None = None,
        expires_at: datetime | None = None,
    ) -> ActorRoleAssignment:
        """Give an actor a role, replacing any previous assignment.

        The snapshot is cleared; the next reconciliation fills it in.

        Raises:
            ValidationError: If the actor id is unusable or expiry is naive
            RoleNotFoundError: If the role does not exist
        """
        _validate_actor_id(actor_id)
        if self._roles.get(role_id) is None:
            raise RoleNotFoundError(role_id)
        if expires_at is not None and expires_at.tzinfo is None:
            raise ValidationError(
                "Expiry must be timezone-aware",
                errors=[{"field": "expires_at", "message": "Missing timezone"}],
            )

        async with self._locks.hold(actor_id):
            previous = await self._storage.load_assignment(actor_id)
            assignment = ActorRoleAssignment(
                actor_id=actor_id,
                role_id=role_id,
                assigned_at=utcnow(),
                assigned_by=assigned_by,
                expires_at=expires_at,
            )
            await self._storage.save_assignment(assignment)

        logger.info(
            "role_assigned",
            actor_id=actor_id,
            role_id=role_id,
            previous_role_id=previous.role_id if previous else None,
            assigned_by=assigned_by,
            expires_at=expires_at.isoformat() if expires_at else None,
        )
        await self._bus.publish(
            AssignmentChanged(
                actor_id=actor_id,
                role_id=role_id,
                previous_role_id=previous.role_id if previous else None,
            )
        )
        return assignment

    async def ensure(self, actor_id: str) -> ActorRoleAssignment:
        """Return the actor's assignment, creating one on first sight.

        New actors get the default role, or the super-role when their id
        is configured as an owner identity.

        Raises:
            ActorNotFoundError: If no role is available for a new actor
        """
        _validate_actor_id(actor_id)
        async with self._locks.hold(actor_id):
            existing = await self._storage.load_assignment(actor_id)
            if existing is not None:
                return existing

            if actor_id in self._owner_actor_ids:
                role = self._roles.super_role()
            else:
                role = self._roles.default_role(self._default_role_id)
            if role is None:
                raise ActorNotFoundError(actor_id, "No default role is configured")

            assignment = ActorRoleAssignment(
                actor_id=actor_id,
                role_id=role.id,
                assigned_at=utcnow(),
                assigned_by=actor_id,
            )
            await self._storage.save_assignment(assignment)

        logger.info("assignment_created", actor_id=actor_id, role_id=role.id)
        await self._bus.publish(AssignmentChanged(actor_id=actor_id, role_id=role.id))
        return assignment

    async def revoke(self, actor_id: str, *, revoked_by: str | None = None) -> bool:
        """Remove an actor's assignment.

        Returns:
            True if an assignment existed
        """
        async with self._locks.hold(actor_id):
            previous = await self._storage.load_assignment(actor_id)
            if previous is None:
                return False
            await self._storage.delete_assignment(actor_id)

        logger.info(
            "role_revoked",
            actor_id=actor_id,
            role_id=previous.role_id,
            revoked_by=revoked_by,
        )
        await self._bus.publish(
            AssignmentChanged(actor_id=actor_id, previous_role_id=previous.role_id)
        )
        return True

    async def write_snapshot(
        self,
        actor_id: str,
        expected_role_id: str,
        snapshot: frozenset[str],
    ) -> bool:
        """Replace an actor's permission snapshot.

        The assignment is re-read under the actor's lock; if its role is no
        longer ``expected_role_id`` the snapshot was computed for a stale
        role and nothing is written.

        Returns:
            True if the snapshot was written
        """
        async with self._locks.hold(actor_id):
            current = await self._storage.load_assignment(actor_id)
            if current is None or current.role_id != expected_role_id:
                logger.debug(
                    "snapshot_write_skipped",
                    actor_id=actor_id,
                    expected_role_id=expected_role_id,
                    current_role_id=current.role_id if current else None,
                )
                return False
            if current.permission_snapshot == snapshot:
                return False
            await self._storage.save_assignment(
                current.model_copy(update={"permission_snapshot": frozenset(snapshot)})
            )
        return True

    async def get_data_scope(self, actor_id: str) -> DataScope:
        """The actor's data scope; "own" when nothing is stored."""
        scope = await self._storage.load_data_scope(actor_id)
        return scope or DataScope(actor_id=actor_id)

    async def set_data_scope(
        self,
        actor_id: str,
        scope: DataScopeLevel | str,
        department: str | None = None,
    ) -> DataScope:
        _validate_actor_id(actor_id)
        data_scope = DataScope(
            actor_id=actor_id,
            scope=DataScopeLevel(scope),
            department=department,
        )
        async with self._locks.hold(actor_id):
            await self._storage.save_data_scope(data_scope)
        logger.info(
            "data_scope_set",
            actor_id=actor_id,
            scope=data_scope.scope,
            department=department,
        )
        return data_scope
