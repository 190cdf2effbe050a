"""SQLAlchemy-backed storage.

Each method runs in its own session and transaction, so every call is
atomic on its own. PostgreSQL (asyncpg) in production, SQLite
(aiosqlite) in tests.
"""

from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rolegate.permissions.models import (
    ActorRoleAssignment,
    DataScope,
    DataScopeLevel,
    Permission,
    Role,
)
from rolegate.storage.models import (
    AssignmentRecord,
    DataScopeRecord,
    PermissionRecord,
    RolePermissionRecord,
    RoleRecord,
)


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_permission(record: PermissionRecord) -> Permission:
    return Permission(
        id=record.id,
        name=record.name,
        description=record.description,
        category=record.category,
    )


def _to_role(record: RoleRecord) -> Role:
    return Role(
        id=record.id,
        name=record.name,
        description=record.description,
        level=record.level,
        permissions=frozenset(link.permission_id for link in record.permission_links),
        is_custom=record.is_custom,
        created_at=_aware(record.created_at),
        created_by=record.created_by,
        updated_at=_aware(record.updated_at),
        updated_by=record.updated_by,
    )


def _to_assignment(record: AssignmentRecord) -> ActorRoleAssignment:
    snapshot = record.permission_snapshot
    return ActorRoleAssignment(
        actor_id=record.actor_id,
        role_id=record.role_id,
        assigned_at=_aware(record.assigned_at),
        assigned_by=record.assigned_by,
        expires_at=_aware(record.expires_at),
        permission_snapshot=frozenset(snapshot) if snapshot is not None else None,
    )


class SqlAlchemyStorage:
    """``PermissionStorage`` over an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ============================================================
    # Catalog
    # ============================================================

    async def load_catalog(self) -> list[Permission]:
        async with self._session_factory() as session:
            result = await session.execute(select(PermissionRecord).order_by(PermissionRecord.id))
            return [_to_permission(record) for record in result.scalars().all()]

    async def save_permission(self, permission: Permission) -> None:
        async with self._session_factory.begin() as session:
            record = await session.get(PermissionRecord, permission.id)
            if record is None:
                record = PermissionRecord(id=permission.id)
                session.add(record)
            record.name = permission.name
            record.description = permission.description
            record.category = permission.category

    async def delete_permission(self, permission_id: str) -> None:
        async with self._session_factory.begin() as session:
            # SQLite does not enforce ON DELETE CASCADE without a pragma
            await session.execute(
                delete(RolePermissionRecord).where(
                    RolePermissionRecord.permission_id == permission_id
                )
            )
            await session.execute(
                delete(PermissionRecord).where(PermissionRecord.id == permission_id)
            )

    # ============================================================
    # Roles
    # ============================================================

    async def load_roles(self) -> list[Role]:
        async with self._session_factory() as session:
            result = await session.execute(select(RoleRecord).order_by(RoleRecord.level, RoleRecord.id))
            return [_to_role(record) for record in result.scalars().all()]

    async def load_role(self, role_id: str) -> Role | None:
        async with self._session_factory() as session:
            record = await session.get(RoleRecord, role_id)
            return _to_role(record) if record is not None else None

    async def save_role(self, role: Role) -> None:
        async with self._session_factory.begin() as session:
            record = await session.get(RoleRecord, role.id)
            if record is None:
                record = RoleRecord(id=role.id, permission_links=[])
                session.add(record)

            record.name = role.name
            record.description = role.description
            record.level = role.level
            record.is_custom = role.is_custom
            record.created_at = role.created_at
            record.created_by = role.created_by
            record.updated_at = role.updated_at
            record.updated_by = role.updated_by

            current = {link.permission_id for link in record.permission_links}
            record.permission_links = [
                link for link in record.permission_links if link.permission_id in role.permissions
            ] + [
                RolePermissionRecord(role_id=role.id, permission_id=permission_id)
                for permission_id in sorted(role.permissions - current)
            ]

    async def delete_role(self, role_id: str) -> None:
        async with self._session_factory.begin() as session:
            record = await session.get(RoleRecord, role_id)
            if record is not None:
                await session.delete(record)

    # ============================================================
    # Assignments
    # ============================================================

    async def load_assignment(self, actor_id: str) -> ActorRoleAssignment | None:
        async with self._session_factory() as session:
            record = await session.get(AssignmentRecord, actor_id)
            return _to_assignment(record) if record is not None else None

    async def save_assignment(self, assignment: ActorRoleAssignment) -> None:
        snapshot = assignment.permission_snapshot
        async with self._session_factory.begin() as session:
            record = await session.get(AssignmentRecord, assignment.actor_id)
            if record is None:
                record = AssignmentRecord(actor_id=assignment.actor_id)
                session.add(record)
            record.role_id = assignment.role_id
            record.assigned_at = assignment.assigned_at
            record.assigned_by = assignment.assigned_by
            record.expires_at = assignment.expires_at
            record.permission_snapshot = sorted(snapshot) if snapshot is not None else None

    async def delete_assignment(self, actor_id: str) -> None:
        async with self._session_factory.begin() as session:
            await session.execute(
                delete(AssignmentRecord).where(AssignmentRecord.actor_id == actor_id)
            )

    async def list_actor_ids_for_role(self, role_id: str) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(AssignmentRecord.actor_id)
                .where(AssignmentRecord.role_id == role_id)
                .order_by(AssignmentRecord.actor_id)
            )
            return list(result.scalars().all())

    async def reassign_role(self, from_role_id: str, to_role_id: str) -> Sequence[str]:
        async with self._session_factory.begin() as session:
            result = await session.execute(
                select(AssignmentRecord.actor_id)
                .where(AssignmentRecord.role_id == from_role_id)
                .order_by(AssignmentRecord.actor_id)
            )
            moved = list(result.scalars().all())
            if moved:
                await session.execute(
                    update(AssignmentRecord)
                    .where(AssignmentRecord.role_id == from_role_id)
                    .values(role_id=to_role_id, permission_snapshot=None)
                )
            return moved

    # ============================================================
    # Data scopes
    # ============================================================

    async def load_data_scope(self, actor_id: str) -> DataScope | None:
        async with self._session_factory() as session:
            record = await session.get(DataScopeRecord, actor_id)
            if record is None:
                return None
            return DataScope(
                actor_id=record.actor_id,
                scope=DataScopeLevel(record.scope),
                department=record.department,
            )

    async def save_data_scope(self, scope: DataScope) -> None:
        async with self._session_factory.begin() as session:
            record = await session.get(DataScopeRecord, scope.actor_id)
            if record is None:
                record = DataScopeRecord(actor_id=scope.actor_id)
                session.add(record)
            record.scope = scope.scope.value
            record.department = scope.department
