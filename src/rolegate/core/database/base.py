"""SQLAlchemy declarative base and common mixins."""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from rolegate.core.constants import MAX_ACTOR_ID_LENGTH


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class AuditMixin(TimestampMixin):
    """Timestamps plus the actor ids that created and last updated a row."""

    created_by: Mapped[str | None] = mapped_column(
        String(MAX_ACTOR_ID_LENGTH),
        nullable=True,
    )
    updated_by: Mapped[str | None] = mapped_column(
        String(MAX_ACTOR_ID_LENGTH),
        nullable=True,
    )
