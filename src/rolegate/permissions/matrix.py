"""Role x permission matrix and coverage reporting for administrators."""

from collections.abc import Iterable

from pydantic import BaseModel

from rolegate.permissions.models import Permission, Role


class RoleCoverage(BaseModel):
    permission_count: int
    coverage: float


class CoverageReport(BaseModel):
    """How much of the catalog each role grants.

    Attributes:
        total_permissions: Size of the catalog
        roles: Per-role permission count and coverage percentage
    """

    total_permissions: int
    roles: dict[str, RoleCoverage]


def _effective(role: Role, catalog_ids: frozenset[str]) -> frozenset[str]:
    if role.is_super:
        return catalog_ids
    return role.permissions & catalog_ids


def build_permission_matrix(
    permissions: Iterable[Permission],
    roles: Iterable[Role],
) -> dict[str, dict[str, bool]]:
    """Build role id -> permission id -> granted.

    Values are effective grants, so the super-role row is all True.
    """
    permission_list = list(permissions)
    catalog_ids = frozenset(p.id for p in permission_list)
    matrix: dict[str, dict[str, bool]] = {}
    for role in roles:
        granted = _effective(role, catalog_ids)
        matrix[role.id] = {p.id: p.id in granted for p in permission_list}
    return matrix


def analyze_coverage(
    permissions: Iterable[Permission],
    roles: Iterable[Role],
) -> CoverageReport:
    """Count each role's effective permissions against the catalog.

    Coverage is a percentage rounded to two decimals.
    """
    catalog_ids = frozenset(p.id for p in permissions)
    total = len(catalog_ids)
    coverage: dict[str, RoleCoverage] = {}
    for role in roles:
        count = len(_effective(role, catalog_ids))
        coverage[role.id] = RoleCoverage(
            permission_count=count,
            coverage=round(count / total * 100, 2) if total else 0.0,
        )
    return CoverageReport(total_permissions=total, roles=coverage)
