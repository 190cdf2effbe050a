"""Role hierarchy.

Roles are ranked by an integer level where a lower number means more
privilege. Rank checks are independent of permission checks.
"""

from enum import IntEnum


class RoleLevel(IntEnum):
    """Levels of the seeded system roles."""

    OWNER = 0
    ADMIN = 1
    MANAGER = 2
    USER = 3
    GUEST = 99


def at_least(actor_level: int, required_level: int) -> bool:
    """Check whether ``actor_level`` is at least as privileged as ``required_level``.

    Example:
        at_least(RoleLevel.MANAGER, RoleLevel.USER)  # True
        at_least(RoleLevel.USER, RoleLevel.MANAGER)  # False
    """
    return actor_level <= required_level
