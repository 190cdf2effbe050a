"""Storage adapters for the permission engine."""

from rolegate.storage.base import PermissionStorage
from rolegate.storage.memory import InMemoryStorage
from rolegate.storage.sql import SqlAlchemyStorage


__all__ = [
    "InMemoryStorage",
    "PermissionStorage",
    "SqlAlchemyStorage",
]
