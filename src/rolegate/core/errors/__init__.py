"""Error handling module."""

from rolegate.core.errors.exceptions import (
    ActorNotFoundError,
    ConflictError,
    DuplicatePermissionError,
    DuplicateRoleLevelError,
    ForbiddenError,
    InvalidPermissionIdError,
    InvalidPermissionReferenceError,
    NotFoundError,
    RoleGateError,
    RoleInUseError,
    RoleNotFoundError,
    SystemRoleProtectedError,
    UnknownPermissionError,
    ValidationError,
)


__all__ = [
    # Engine errors
    "ActorNotFoundError",
    # Generic errors
    "ConflictError",
    "DuplicatePermissionError",
    "DuplicateRoleLevelError",
    "ForbiddenError",
    "InvalidPermissionIdError",
    "InvalidPermissionReferenceError",
    "NotFoundError",
    "RoleGateError",
    "RoleInUseError",
    "RoleNotFoundError",
    "SystemRoleProtectedError",
    "UnknownPermissionError",
    "ValidationError",
]
