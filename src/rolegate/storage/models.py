"""Database tables of the permission engine.

- permissions: the catalog
- roles: role definitions with audit columns
- role_permissions: junction rows linking roles to permission ids
- actor_role_assignments: one row per actor, indexed by role for reverse lookups
- data_scopes: per-actor data scope
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rolegate.core.constants import (
    MAX_ACTOR_ID_LENGTH,
    MAX_CATEGORY_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_PERMISSION_ID_LENGTH,
    MAX_ROLE_ID_LENGTH,
    MAX_ROLE_NAME_LENGTH,
)
from rolegate.core.database.base import AuditMixin, Base, TimestampMixin


class PermissionRecord(Base, TimestampMixin):
    """A registered permission id.

    Attributes:
        id: "resource:action" id
        name: Display name
        description: Human-readable description
        category: Grouping tag
    """

    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(
        String(MAX_PERMISSION_ID_LENGTH),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=False,
        default="",
    )
    description: Mapped[str] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=False,
        default="",
    )
    category: Mapped[str] = mapped_column(
        String(MAX_CATEGORY_LENGTH),
        nullable=False,
        default="",
        index=True,
    )

    def __repr__(self) -> str:
        return f"<PermissionRecord({self.id})>"


class RolePermissionRecord(Base):
    """Junction row: role grants permission."""

    __tablename__ = "role_permissions"

    role_id: Mapped[str] = mapped_column(
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    )
    permission_id: Mapped[str] = mapped_column(
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )


class RoleRecord(Base, AuditMixin):
    """A role definition.

    Attributes:
        id: Role id
        name: Display name
        description: Human-readable description
        level: Rank, lower is more privileged
        is_custom: False for system roles
    """

    __tablename__ = "roles"

    id: Mapped[str] = mapped_column(
        String(MAX_ROLE_ID_LENGTH),
        primary_key=True,
    )
    name: Mapped[str] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(
        String(MAX_DESCRIPTION_LENGTH),
        nullable=False,
        default="",
    )
    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        index=True,
    )
    is_custom: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Relationships
    permission_links: Mapped[list[RolePermissionRecord]] = relationship(
        RolePermissionRecord,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<RoleRecord(id={self.id}, level={self.level})>"


class AssignmentRecord(Base):
    """An actor's role assignment and permission snapshot."""

    __tablename__ = "actor_role_assignments"

    actor_id: Mapped[str] = mapped_column(
        String(MAX_ACTOR_ID_LENGTH),
        primary_key=True,
    )
    role_id: Mapped[str] = mapped_column(
        ForeignKey("roles.id"),
        nullable=False,
        index=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    assigned_by: Mapped[str | None] = mapped_column(
        String(MAX_ACTOR_ID_LENGTH),
        nullable=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Sorted list of permission ids; NULL until first reconciled
    permission_snapshot: Mapped[list[str] | None] = mapped_column(
        JSON(none_as_null=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AssignmentRecord(actor_id={self.actor_id}, role_id={self.role_id})>"


class DataScopeRecord(Base, TimestampMixin):
    """An actor's data scope."""

    __tablename__ = "data_scopes"

    actor_id: Mapped[str] = mapped_column(
        String(MAX_ACTOR_ID_LENGTH),
        primary_key=True,
    )
    scope: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    department: Mapped[str | None] = mapped_column(
        String(MAX_ROLE_NAME_LENGTH),
        nullable=True,
    )
