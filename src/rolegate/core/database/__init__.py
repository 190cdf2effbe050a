"""Database layer - engine/session construction, base models, and mixins."""

from rolegate.core.database.base import AuditMixin, Base, TimestampMixin
from rolegate.core.database.session import (
    create_engine,
    create_schema,
    create_session_factory,
)


__all__ = [
    "AuditMixin",
    "Base",
    "TimestampMixin",
    "create_engine",
    "create_schema",
    "create_session_factory",
]
