"""Effective permission resolution.

Given an actor, the resolver works out which role applies and which
permission ids that role grants. It never writes; snapshots are the
reconciler's business.
"""

from datetime import datetime

import structlog
from pydantic import BaseModel, ConfigDict

from rolegate.core.errors import ActorNotFoundError
from rolegate.permissions.assignments import AssignmentStore
from rolegate.permissions.catalog import PermissionCatalog
from rolegate.permissions.models import (
    ActorRoleAssignment,
    FallbackReason,
    PermissionSet,
    Role,
    utcnow,
)
from rolegate.permissions.roles import RoleStore


logger = structlog.get_logger()


class ResolvedPermissions(BaseModel):
    """The outcome of resolving an actor.

    Attributes:
        actor_id: The resolved actor
        role: The role that applies (the default role on fallback)
        permissions: Effective permission ids
        fallback: Why the default role was substituted, if it was
        assignment: The stored assignment, expired or not
        from_snapshot: Whether ``permissions`` came from the stored snapshot
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str
    role: Role
    permissions: PermissionSet
    fallback: FallbackReason | None = None
    assignment: ActorRoleAssignment | None = None
    from_snapshot: bool = False

    @property
    def is_super(self) -> bool:
        return self.role.is_super

    @property
    def level(self) -> int:
        return self.role.level

    @property
    def valid_until(self) -> datetime | None:
        """When this resolution stops being true because the assignment lapses."""
        if self.fallback is None and self.assignment is not None:
            return self.assignment.expires_at
        return None

    def has(self, permission_id: str) -> bool:
        return permission_id in self.permissions


class Resolver:
    """Resolves actors to their effective permission set."""

    def __init__(
        self,
        catalog: PermissionCatalog,
        roles: RoleStore,
        assignments: AssignmentStore,
        *,
        default_role_id: str | None = None,
    ) -> None:
        self._catalog = catalog
        self._roles = roles
        self._assignments = assignments
        self._default_role_id = default_role_id

    def permissions_for(self, role: Role) -> PermissionSet:
        """Effective permissions of a role.

        The super-role gets the whole catalog as it is right now; its
        stored set is ignored.
        """
        if role.is_super:
            return self._catalog.ids()
        return role.permissions

    def _default_role(self, actor_id: str) -> Role:
        role = self._roles.default_role(self._default_role_id)
        if role is None:
            logger.error(
                "default_role_missing",
                actor_id=actor_id,
                default_role_id=self._default_role_id,
            )
            raise ActorNotFoundError(actor_id, "No default role is configured")
        return role

    async def resolve(self, actor_id: str) -> ResolvedPermissions:
        """Resolve an actor's effective permissions.

        Args:
            actor_id: The actor to resolve

        Returns:
            The applicable role and its effective permission set

        Raises:
            ActorNotFoundError: If the default role is needed but not available
        """
        assignment = await self._assignments.get(actor_id)
        fallback: FallbackReason | None = None
        role: Role | None = None

        if assignment is None:
            fallback = FallbackReason.NO_ASSIGNMENT
        elif assignment.is_expired(utcnow()):
            fallback = FallbackReason.EXPIRED
        else:
            role = self._roles.get(assignment.role_id)
            if role is None:
                logger.warning(
                    "assigned_role_missing",
                    actor_id=actor_id,
                    role_id=assignment.role_id,
                )
                fallback = FallbackReason.ROLE_NOT_FOUND

        if role is None:
            role = self._default_role(actor_id)

        return ResolvedPermissions(
            actor_id=actor_id,
            role=role,
            permissions=self.permissions_for(role),
            fallback=fallback,
            assignment=assignment,
        )

    async def resolve_from_snapshot(self, actor_id: str) -> ResolvedPermissions:
        """Resolve using the stored snapshot when it can be trusted.

        The snapshot is used only for an active assignment to an existing,
        non-super role. Everything else goes through ``resolve``.
        """
        assignment = await self._assignments.get(actor_id)
        if (
            assignment is not None
            and assignment.permission_snapshot is not None
            and not assignment.is_expired(utcnow())
        ):
            role = self._roles.get(assignment.role_id)
            if role is not None and not role.is_super:
                return ResolvedPermissions(
                    actor_id=actor_id,
                    role=role,
                    permissions=assignment.permission_snapshot,
                    assignment=assignment,
                    from_snapshot=True,
                )
        return await self.resolve(actor_id)
