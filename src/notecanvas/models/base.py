"""
SQLAlchemy Base Models

Declarative base and timestamp mixins shared by every table.
"""

from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Declarative base class for all SQLAlchemy ORM models."""

    pass


class CreatedAtMixin:
    """Adds a database-populated created_at column (insert-only tables)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),  # Database-side default, not Python-side
        nullable=False,
    )


class TimestampMixin(CreatedAtMixin):
    """
    Adds created_at and updated_at for mutable tables.

    updated_at is NULL on insert and set by the ORM on every UPDATE.
    """

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
