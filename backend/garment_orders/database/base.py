"""
SQLAlchemy declarative base and common model mixins.

This module provides the SQLAlchemy DeclarativeBase shared by every table,
plus mixins for UUID primary keys and timestamps. Column types are kept
portable (``Uuid``, timezone-aware ``DateTime``) so the same metadata runs on
PostgreSQL in production and on SQLite in the test suite.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Uuid, func
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(AsyncAttrs, DeclarativeBase):
    """
    Base class for all SQLAlchemy models with async support.

    Provides raw column access for row copies and a readable ``__repr__``.
    """

    __abstract__ = True

    def column_values(self, exclude: Optional[set[str]] = None) -> Dict[str, Any]:
        """
        Raw column values keyed by attribute name, for copying rows.

        Args:
            exclude: Attribute names to leave out

        Returns:
            Dictionary of attribute name to current Python value
        """
        exclude = exclude or set()
        return {
            column.key: getattr(self, column.key)
            for column in self.__table__.columns
            if column.key not in exclude
        }

    def __repr__(self) -> str:
        pk_values = []
        for column in self.__table__.primary_key.columns:
            value = getattr(self, column.key, None)
            if value is not None:
                pk_values.append(f"{column.key}={value!r}")

        pk_str = ", ".join(pk_values) if pk_values else "no primary key"
        return f"<{self.__class__.__name__}({pk_str})>"


class TimestampMixin:
    """
    Mixin for automatic timestamp management.

    Values are assigned in Python so they are available on the instance
    right after flush; server defaults cover rows written outside the ORM.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
        )

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            onupdate=utcnow,
            server_default=func.now(),
        )


class CreatedAtMixin:
    """Creation timestamp only, for append-only tables."""

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(
            DateTime(timezone=True),
            nullable=False,
            default=utcnow,
            server_default=func.now(),
        )


class UUIDMixin:
    """
    Mixin for UUID primary key.

    Native UUID on PostgreSQL, 32-character text elsewhere.
    """

    @declared_attr
    def id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            primary_key=True,
            default=uuid.uuid4,
            nullable=False,
        )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """
    Base model with UUID primary key and created/updated timestamps.

    Example:
        class Client(BaseModel):
            __tablename__ = "clients"

            name: Mapped[str] = mapped_column(String(255))
    """

    __abstract__ = True


class AppendOnlyModel(Base, UUIDMixin, CreatedAtMixin):
    """Base model for ledger-style tables that are never updated."""

    __abstract__ = True
