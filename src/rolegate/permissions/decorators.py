"""Permission decorators for protecting async callables.

The decorated function must be called with ``guard`` and ``actor_id``
keyword arguments; ``resource_owner_id`` is passed through to data-scope
rules when present.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, cast

from rolegate.core.errors import ForbiddenError
from rolegate.permissions.guard import Guard, Requirement


P = ParamSpec("P")
R = TypeVar("R")


def _get_guard_and_actor(
    kwargs: dict[str, Any],
) -> tuple[Guard | None, str | None, str | None]:
    """Extract guard, actor id and resource owner from kwargs.

    Args:
        kwargs: Function keyword arguments

    Returns:
        Tuple of (guard, actor_id, resource_owner_id)
    """
    guard = cast("Guard | None", kwargs.get("guard"))
    actor_id = cast("str | None", kwargs.get("actor_id"))
    owner_id = cast("str | None", kwargs.get("resource_owner_id"))
    return guard, actor_id, owner_id


def require(
    requirement: Requirement,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires an arbitrary ``Requirement``.

    Usage:
        @require(Requirement.permission("project:write") & Requirement.rank(2))
        async def update_project(project_id: str, *, guard: Guard, actor_id: str):
            ...

    Raises:
        ForbiddenError: If the actor does not satisfy the requirement
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            guard, actor_id, owner_id = _get_guard_and_actor(kwargs)

            if not actor_id:
                raise ForbiddenError(
                    "Authentication required",
                    error_code="auth_required",
                )

            if guard is None:
                raise ForbiddenError(
                    "Permission check failed",
                    error_code="permission_check_failed",
                )

            decision = await guard.allow(actor_id, requirement, resource_owner_id=owner_id)

            if not decision:
                raise ForbiddenError(
                    decision.reason,
                    error_code="permission_denied",
                    details={
                        "required_permissions": sorted(requirement.permission_ids()),
                        "actor_id": actor_id,
                    },
                )

            return await func(*args, **kwargs)

        return wrapper

    return decorator


def require_permission(
    permission_id: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires a specific permission.

    Usage:
        @require_permission("project:delete")
        async def delete_project(project_id: str, *, guard: Guard, actor_id: str):
            ...
    """
    return require(Requirement.permission(permission_id))


def require_any_permission(
    permission_ids: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires any one of the specified permissions."""
    return require(Requirement.any_permission(*permission_ids))


def require_all_permissions(
    permission_ids: list[str],
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires all of the specified permissions."""
    return require(Requirement.all_permissions(*permission_ids))


def require_rank(
    min_level: int,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that requires a role at least as privileged as ``min_level``."""
    return require(Requirement.rank(min_level))


def require_super_role() -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator that only lets the super-role through."""
    return require(Requirement.super_role())
