"""Decision point.

``Guard.allow`` answers "may this actor do X" for a ``Requirement``.
Layers are evaluated in a fixed order and AND-ed:

1. super-role bypass (always allowed)
2. require-super flag (denies everyone else)
3. permission and rank checks, through the cache and resolver
4. data-scope rule against the resource owner
"""

from dataclasses import dataclass, field

import structlog

from rolegate.core.constants import SUPER_ROLE_LEVEL
from rolegate.core.errors import ActorNotFoundError, RoleGateError
from rolegate.permissions.assignments import AssignmentStore
from rolegate.permissions.cache import DecisionCache
from rolegate.permissions.catalog import PermissionCatalog
from rolegate.permissions.hierarchy import at_least
from rolegate.permissions.models import DataScopeLevel
from rolegate.permissions.resolver import Resolver


logger = structlog.get_logger()


@dataclass(frozen=True)
class DataScopeRule:
    """Restricts access to records by owner.

    Attributes:
        scope: Scope to enforce; None uses the actor's stored data scope
        owner_of: Owner of the record; None uses the owner passed to allow()
    """

    scope: DataScopeLevel | None = None
    owner_of: str | None = None


@dataclass(frozen=True)
class Requirement:
    """What an operation demands of the actor.

    Combine requirements with ``&``:

        Requirement.permission("project:write") & Requirement.rank(RoleLevel.MANAGER)
    """

    all_of: frozenset[str] = frozenset()
    any_of: tuple[frozenset[str], ...] = ()
    min_level: int | None = None
    require_super: bool = False
    scope: DataScopeRule | None = None

    @classmethod
    def permission(cls, permission_id: str) -> "Requirement":
        return cls(all_of=frozenset([permission_id]))

    @classmethod
    def all_permissions(cls, *permission_ids: str) -> "Requirement":
        return cls(all_of=frozenset(permission_ids))

    @classmethod
    def any_permission(cls, *permission_ids: str) -> "Requirement":
        return cls(any_of=(frozenset(permission_ids),))

    @classmethod
    def rank(cls, min_level: int) -> "Requirement":
        return cls(min_level=min_level)

    @classmethod
    def super_role(cls) -> "Requirement":
        return cls(require_super=True)

    @classmethod
    def data_scope(
        cls,
        scope: DataScopeLevel | str | None = None,
        owner_of: str | None = None,
    ) -> "Requirement":
        level = DataScopeLevel(scope) if scope is not None else None
        return cls(scope=DataScopeRule(scope=level, owner_of=owner_of))

    def __and__(self, other: "Requirement") -> "Requirement":
        if self.scope is not None and other.scope is not None and self.scope != other.scope:
            raise ValueError("Cannot combine two different data-scope rules")
        levels = [lvl for lvl in (self.min_level, other.min_level) if lvl is not None]
        return Requirement(
            all_of=self.all_of | other.all_of,
            any_of=self.any_of + other.any_of,
            min_level=min(levels) if levels else None,
            require_super=self.require_super or other.require_super,
            scope=self.scope or other.scope,
        )

    def permission_ids(self) -> frozenset[str]:
        """Every permission id the requirement mentions."""
        ids = set(self.all_of)
        for group in self.any_of:
            ids |= group
        return frozenset(ids)


@dataclass
class Decision:
    """Outcome of a guard check; truthy when allowed."""

    allowed: bool
    reason: str
    role_id: str | None = None
    error: RoleGateError | None = field(default=None, compare=False)

    def __bool__(self) -> bool:
        return self.allowed


class Guard:
    """Evaluates requirements for actors."""

    def __init__(
        self,
        catalog: PermissionCatalog,
        resolver: Resolver,
        cache: DecisionCache,
        assignments: AssignmentStore,
    ) -> None:
        self._catalog = catalog
        self._resolver = resolver
        self._cache = cache
        self._assignments = assignments

    async def _grants(
        self, actor_id: str, permission_ids: frozenset[str]
    ) -> tuple[str, int, dict[str, bool]]:
        """Decisions for ``permission_ids``, from the cache when complete.

        Returns:
            (role_id, role level, decisions)
        """
        token = self._cache.begin(actor_id)

        cached = self._cache.role_of(actor_id)
        if cached is not None:
            role_id, level = cached
            grants: dict[str, bool] = {}
            for permission_id in permission_ids:
                allowed, found = self._cache.get(actor_id, permission_id)
                if not found:
                    break
                grants[permission_id] = allowed
            else:
                return role_id, level, grants

        resolved = await self._resolver.resolve(actor_id)
        grants = {p: resolved.has(p) for p in permission_ids}

        self._cache.remember(
            actor_id,
            role_id=resolved.role.id,
            level=resolved.level,
            token=token,
            valid_until=resolved.valid_until,
        )
        for permission_id, allowed in grants.items():
            self._cache.put(
                actor_id,
                permission_id,
                allowed,
                role_id=resolved.role.id,
                level=resolved.level,
                token=token,
                valid_until=resolved.valid_until,
            )
        return resolved.role.id, resolved.level, grants

    async def _check_scope(
        self,
        actor_id: str,
        rule: DataScopeRule,
        resource_owner_id: str | None,
    ) -> str | None:
        """Return a denial reason, or None when the scope rule passes."""
        actor_scope = await self._assignments.get_data_scope(actor_id)
        scope = rule.scope or actor_scope.scope
        owner_id = rule.owner_of or resource_owner_id

        if scope == DataScopeLevel.ALL:
            return None
        if scope == DataScopeLevel.NONE:
            return "Data scope 'none' denies access to all records"
        if owner_id is None:
            return f"Data scope '{scope}' requires a resource owner"
        if owner_id == actor_id:
            return None
        if scope == DataScopeLevel.DEPARTMENT:
            owner_scope = await self._assignments.get_data_scope(owner_id)
            if actor_scope.department and actor_scope.department == owner_scope.department:
                return None
            return "Record belongs to another department"
        return "Record belongs to another actor"

    async def allow(
        self,
        actor_id: str,
        requirement: Requirement,
        resource_owner_id: str | None = None,
    ) -> Decision:
        """Decide whether ``actor_id`` satisfies ``requirement``.

        Args:
            actor_id: The acting identity
            requirement: What the operation demands
            resource_owner_id: Owner of the record being accessed, for
                data-scope rules

        Returns:
            A truthy Decision when allowed, a falsy one with a reason when
            denied. Resolution failures are denied with ``error`` set.

        Raises:
            InvalidPermissionIdError: If the requirement names a malformed id
            UnknownPermissionError: If the requirement names an unregistered id
        """
        permission_ids = frozenset(
            self._catalog.permission_id(p) for p in requirement.permission_ids()
        )

        try:
            role_id, level, grants = await self._grants(actor_id, permission_ids)
        except ActorNotFoundError as e:
            logger.error(
                "guard_resolution_failed",
                actor_id=actor_id,
                error=e.message,
                error_code=e.error_code,
            )
            return Decision(allowed=False, reason=e.message, error=e)

        if level == SUPER_ROLE_LEVEL:
            logger.info(
                "superrole_bypass",
                actor_id=actor_id,
                permissions=sorted(permission_ids),
            )
            return Decision(allowed=True, reason="Super-role bypass", role_id=role_id)

        reason = self._deny_reason(requirement, level, grants)
        if reason is None and requirement.scope is not None:
            reason = await self._check_scope(actor_id, requirement.scope, resource_owner_id)

        if reason is not None:
            logger.info("guard_denied", actor_id=actor_id, reason=reason)
            return Decision(allowed=False, reason=reason, role_id=role_id)
        return Decision(allowed=True, reason="Requirement satisfied", role_id=role_id)

    @staticmethod
    def _deny_reason(requirement: Requirement, level: int, grants: dict[str, bool]) -> str | None:
        if requirement.require_super:
            return "Requires the super-role"

        missing = sorted(p for p in requirement.all_of if not grants[p])
        if missing:
            return f"Missing required permissions: {', '.join(missing)}"

        for group in requirement.any_of:
            if group and not any(grants[p] for p in group):
                return f"Missing required permission. Need one of: {', '.join(sorted(group))}"

        if requirement.min_level is not None and not at_least(level, requirement.min_level):
            return f"Requires rank {requirement.min_level} or higher, actor has {level}"

        return None

    async def check(
        self,
        actor_id: str,
        permission_id: str,
        resource_owner_id: str | None = None,
    ) -> Decision:
        """Shorthand for a single-permission requirement."""
        return await self.allow(actor_id, Requirement.permission(permission_id), resource_owner_id)
