"""Core services and cross-cutting concerns."""

from rolegate.core.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RoleGateError,
    ValidationError,
)
from rolegate.core.logging import configure_logging


__all__ = [
    "ConflictError",
    "ForbiddenError",
    "NotFoundError",
    # Errors
    "RoleGateError",
    "ValidationError",
    # Logging
    "configure_logging",
]
