"""Permission catalog.

The catalog is the vocabulary of permission ids. It is loaded once from
storage at start-up and changed afterwards only through ``register`` or
an all-or-nothing ``apply_batch``.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog

from rolegate.core.constants import (
    CATEGORY_ORDER,
    MAX_PERMISSION_ID_LENGTH,
    PERMISSION_ID_PATTERN,
    SYSTEM_ACTOR,
)
from rolegate.core.errors import (
    DuplicatePermissionError,
    InvalidPermissionIdError,
    InvalidPermissionReferenceError,
    UnknownPermissionError,
)
from rolegate.permissions.models import Permission, PermissionId, Role


if TYPE_CHECKING:
    from rolegate.permissions.roles import RoleStore
    from rolegate.storage.base import PermissionStorage


logger = structlog.get_logger()


def _category_key(permission: Permission) -> tuple[int, str, str]:
    try:
        rank = CATEGORY_ORDER.index(permission.category)
    except ValueError:
        rank = len(CATEGORY_ORDER)
    return rank, permission.category, permission.id


def validate_permission_id(raw: str) -> str:
    """Check the format of a permission id.

    Raises:
        InvalidPermissionIdError: If the id is not resource:action
    """
    if len(raw) > MAX_PERMISSION_ID_LENGTH or not PERMISSION_ID_PATTERN.match(raw):
        raise InvalidPermissionIdError(raw)
    return raw


class PermissionCatalog:
    """In-memory view of the registered permissions.

    Reads never touch storage; writes persist first and update the view
    afterwards.
    """

    def __init__(self, storage: "PermissionStorage") -> None:
        self._storage = storage
        self._permissions: dict[str, Permission] = {}

    async def load(self) -> None:
        """Replace the in-memory view with the stored catalog."""
        permissions = await self._storage.load_catalog()
        self._permissions = {p.id: p for p in permissions}
        logger.info("catalog_loaded", permissions=len(self._permissions))

    def get(self, permission_id: str) -> Permission | None:
        return self._permissions.get(permission_id)

    def exists(self, permission_id: str) -> bool:
        return permission_id in self._permissions

    def ids(self) -> frozenset[str]:
        """Every registered permission id, computed from the current view."""
        return frozenset(self._permissions)

    def categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for permission in self.list():
            seen.setdefault(permission.category, None)
        return list(seen)

    def __len__(self) -> int:
        return len(self._permissions)

    def __contains__(self, permission_id: object) -> bool:
        return permission_id in self._permissions

    def permission_id(self, raw: str) -> PermissionId:
        """Build a typed permission id.

        This is the only place a ``PermissionId`` is created.

        Args:
            raw: Candidate id such as "project:write"

        Returns:
            The validated id

        Raises:
            InvalidPermissionIdError: If the id is malformed
            UnknownPermissionError: If the id is not registered
        """
        if isinstance(raw, PermissionId):
            return raw
        validate_permission_id(raw)
        if raw not in self._permissions:
            raise UnknownPermissionError(raw)
        return PermissionId(raw)

    def unknown_ids(self, permission_ids: Iterable[str]) -> list[str]:
        """Return the ids from ``permission_ids`` that are not registered."""
        return sorted(p for p in set(permission_ids) if p not in self._permissions)

    async def register(self, permission: Permission) -> Permission:
        """Add a new permission to the catalog.

        Raises:
            InvalidPermissionIdError: If the id is malformed
            DuplicatePermissionError: If the id is already registered
        """
        validate_permission_id(permission.id)
        if permission.id in self._permissions:
            raise DuplicatePermissionError(permission.id)

        await self._storage.save_permission(permission)
        self._permissions[permission.id] = permission

        logger.info("permission_registered", permission_id=permission.id)
        return permission

    async def apply_batch(
        self,
        role_store: "RoleStore",
        *,
        register: Iterable[Permission] = (),
        retire: Iterable[str] = (),
        roles: Iterable[Role] = (),
        updated_by: str = SYSTEM_ACTOR,
    ) -> None:
        """Apply a set of catalog and role changes all together or not at all.

        Every role reference is re-validated against the resulting catalog
        before anything is written. Retired ids are dropped from the
        super-role's stored set, which is display-only.

        Args:
            role_store: The role store whose roles must stay consistent
            register: New permissions to add
            retire: Permission ids to remove
            roles: Role upserts to apply together with the catalog change
            updated_by: Audit actor for rewritten roles

        Raises:
            InvalidPermissionIdError: If a new id is malformed
            DuplicatePermissionError: If a new id is already registered
            UnknownPermissionError: If a retired id is not registered
            InvalidPermissionReferenceError: If a non-super role would
                reference an unknown permission
        """
        new_permissions: dict[str, Permission] = {}
        for permission in register:
            validate_permission_id(permission.id)
            if permission.id in self._permissions or permission.id in new_permissions:
                raise DuplicatePermissionError(permission.id)
            new_permissions[permission.id] = permission

        retired = set(retire)
        for permission_id in sorted(retired):
            if permission_id not in self._permissions:
                raise UnknownPermissionError(permission_id)

        resulting_ids = (set(self._permissions) - retired) | set(new_permissions)

        pending = {role.id: role for role in roles}
        candidates = {role.id: role for role in role_store.list()}
        candidates.update(pending)

        for role in candidates.values():
            if role.is_super:
                continue
            unknown = role.permissions - resulting_ids
            if unknown:
                raise InvalidPermissionReferenceError(role.id, list(unknown))

        for role in pending.values():
            # The super-role's retired ids are stripped after the upsert
            known = resulting_ids | retired if role.is_super else resulting_ids
            role_store.validate(role, known_ids=known)

        # Nothing has been written yet; commit in dependency order
        for permission in new_permissions.values():
            await self._storage.save_permission(permission)
            self._permissions[permission.id] = permission

        for role in pending.values():
            await role_store.upsert(role, updated_by=updated_by)

        super_role = role_store.super_role()
        if super_role is not None and super_role.permissions & retired:
            await role_store.set_permissions(
                super_role.id,
                super_role.permissions - retired,
                updated_by=updated_by,
            )

        for permission_id in sorted(retired):
            await self._storage.delete_permission(permission_id)
            del self._permissions[permission_id]

        logger.info(
            "catalog_batch_applied",
            registered=sorted(new_permissions),
            retired=sorted(retired),
            roles=sorted(pending),
        )

    # Defined last so the name does not shadow ``list`` in the annotations above
    def list(self) -> list[Permission]:
        """All permissions, grouped by category in display order, then by id."""
        return sorted(self._permissions.values(), key=_category_key)
