"""
Module: church_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.
    Provides the UUID column type, a type annotation map for consistent
    column types, and the TimestampedBase mixin.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  ALL model files import from here.  This module MUST NOT import
    from models/, services/, domain/, or outer layers.

Invariants enforced:
    - datetime columns are always timezone-aware.
    - UUIDs are stored as String(36) so SQLite and PostgreSQL behave alike.

Unlike ledger rows, Church and Actor rows are keyed by their natural
identifiers (parish id, actor uid), so ``Base`` declares no primary key;
each model declares its own.
"""

from datetime import datetime, timezone
from typing import ClassVar
from uuid import UUID as PyUUID

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware DateTime that survives SQLite.

    SQLite drops tzinfo on the way back; values are normalized to UTC on
    bind and re-tagged as UTC on load so comparisons with ``Clock.now()``
    never mix naive and aware datetimes.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            return value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - datetime maps to a timezone-aware UTC column.
        - UUID maps to String(36).
        - int maps to BigInteger, except version tokens which use Integer
          explicitly.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger().with_variant(Integer, "sqlite"),
    }


class TimestampedBase(Base):
    """
    Abstract base carrying creation provenance and timestamps.

    Timestamps come from the injected Clock, never from server defaults,
    so tests can assert on them.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    created_by_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


UUID = PyUUID
