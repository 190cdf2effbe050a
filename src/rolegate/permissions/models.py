"""Permission engine domain models.

This module defines the values the engine passes around:
- Permission: a namespaced capability id plus display metadata
- Role: a named, ranked bundle of permission ids
- ActorRoleAssignment: an actor's (optionally expiring) role plus snapshot
- DataScope: which records an actor may see ("own", "department", ...)

All models are immutable; updates go through ``model_copy(update=...)``
and are persisted as whole values.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rolegate.core.constants import (
    DEFAULT_ROLE_LEVEL,
    MAX_ROLE_NAME_LENGTH,
    PERMISSION_ID_PATTERN,
    SUPER_ROLE_LEVEL,
)


PermissionSet = frozenset[str]


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(UTC)


class PermissionId(str):
    """A permission id known to be well-formed and registered.

    Only ``PermissionCatalog.permission_id()`` creates these; code that
    holds a ``PermissionId`` never needs to re-validate it.
    """

    __slots__ = ()


def parse_permission_id(permission_id: str) -> tuple[str, str]:
    """Split a permission id into (resource, action).

    The first segment is the resource; everything after it is the action,
    so "project:task:assign" parses to ("project", "task:assign").

    Raises:
        ValueError: If the id is not of the form resource:action
    """
    if not PERMISSION_ID_PATTERN.match(permission_id):
        raise ValueError(f"Malformed permission id '{permission_id}'")
    resource, action = permission_id.split(":", 1)
    return resource, action


class Permission(BaseModel):
    """An atomic capability such as ``project:write``.

    Attributes:
        id: Globally unique "resource:action" id, immutable once published
        name: Display name
        description: Human-readable description
        category: Grouping tag for administrative listings
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: str = ""
    category: str = ""

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject ids that are not resource:action."""
        parse_permission_id(v)
        return v

    @property
    def resource(self) -> str:
        """The resource segment of the id."""
        return parse_permission_id(self.id)[0]

    @property
    def action(self) -> str:
        """The action part of the id (may itself contain colons)."""
        return parse_permission_id(self.id)[1]


class Role(BaseModel):
    """A named, ranked bundle of permissions.

    Attributes:
        id: Unique role id
        name: Display name
        description: Human-readable description
        level: Rank, lower is more privileged (0 = super-role, 99 = default)
        permissions: Permission ids granted by the role
        is_custom: False for system roles, True for administrator-created ones

    Note:
        The super-role's ``permissions`` are cosmetic. Resolution always
        grants it the whole catalog.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = Field(max_length=MAX_ROLE_NAME_LENGTH)
    description: str = ""
    level: int = Field(ge=SUPER_ROLE_LEVEL, le=DEFAULT_ROLE_LEVEL)
    permissions: PermissionSet = frozenset()
    is_custom: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    created_by: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: str | None = None

    @property
    def is_super(self) -> bool:
        """Whether this is the super-role that bypasses all checks."""
        return self.level == SUPER_ROLE_LEVEL

    def grants(self, permission_id: str) -> bool:
        """Check the stored permission set (ignores the super-role bypass)."""
        return permission_id in self.permissions


class ActorRoleAssignment(BaseModel):
    """An actor's role, optional expiry, and cached permission snapshot.

    Attributes:
        actor_id: The actor this assignment belongs to
        role_id: The assigned role
        assigned_at: When the role was assigned
        assigned_by: Who assigned it (the actor itself on first login)
        expires_at: When the assignment lapses (None = never)
        permission_snapshot: Last reconciled permission set, written only
            by the reconciler
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str
    role_id: str
    assigned_at: datetime = Field(default_factory=utcnow)
    assigned_by: str | None = None
    expires_at: datetime | None = None
    permission_snapshot: PermissionSet | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the assignment has lapsed."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utcnow())

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_expired(now)


class DataScopeLevel(StrEnum):
    """Which records an actor may access."""

    ALL = "all"
    DEPARTMENT = "department"
    OWN = "own"
    NONE = "none"


class DataScope(BaseModel):
    """Per-actor data scope.

    Actors without a stored scope are limited to their own records.
    """

    model_config = ConfigDict(frozen=True)

    actor_id: str
    scope: DataScopeLevel = DataScopeLevel.OWN
    department: str | None = None


class FallbackReason(StrEnum):
    """Why resolution substituted the default role."""

    NO_ASSIGNMENT = "no_assignment"
    EXPIRED = "expired"
    ROLE_NOT_FOUND = "role_not_found"
