"""
Module: stock_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map, the TrackedBase
    audit mixin and the TenantScoped mixin.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or modules.

Invariants enforced:
    - UUID primary keys: every model inherits a uuid4-generated primary key.
    - Decimal precision: Python Decimal maps to Numeric(38, 9).  NEVER use
      float for prices or totals.
    - Tenant column: every tenant-owned row carries a NOT NULL, indexed
      tenant_id.  The write guard in db/immutability.py checks it on flush.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, ForeignKey, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
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


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Guarantees:
        - created_at is set to server NOW() on INSERT and never changes.
        - updated_at auto-updates on every UPDATE.
        - created_by_id is required -- every record has a creator.
    """

    __abstract__ = True

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

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class TenantScoped:
    """
    Mixin for rows owned by one tenant ("boutique").

    Contract:
        Every query on a TenantScoped model carries an explicit
        ``tenant_id`` filter.  Every write is checked against the tenant
        bound to the session (see db/immutability.py).
    """

    @declared_attr
    def tenant_id(cls) -> Mapped[PyUUID]:
        return mapped_column(
            UUIDString(),
            ForeignKey("tenants.id"),
            nullable=False,
            index=True,
        )


# Re-export UUID for convenience
UUID = PyUUID


class ImmutableRow:
    """
    Marker mixin for rows that are written once and never updated in place.

    Document lines use it: editing a document replaces all of its lines.
    The before_update listener in db/immutability.py enforces it.
    """


class Finalizable:
    """
    Mixin for headers that freeze once their ``status`` is final.

    Subclasses set ``__final_statuses__``.  The transition INTO a final
    status is allowed; any later update or delete is rejected.
    """

    __final_statuses__: ClassVar[frozenset[str]] = frozenset()


class FinalizableChild:
    """
    Mixin for child rows frozen together with their Finalizable parent.

    Subclasses implement ``parent_status_query()`` returning a select of
    the parent's status column, evaluated on the flush connection.
    """

    __final_statuses__: ClassVar[frozenset[str]] = frozenset()

    def parent_status_query(self):
        raise NotImplementedError
