"""
Module: stock_kernel.models.activity
Responsibility: ORM persistence for the best-effort activity log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Rows are written by DatabaseActivitySink in its own session, after the
business transaction committed.  A missing row never means the business
operation did not happen.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class ActivityLogEntry(Base):
    """One reported state transition or movement."""

    __tablename__ = "activity_log"

    __table_args__ = (
        Index("idx_activity_tenant_entity", "tenant_id", "entity_type", "entity_id"),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)

    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)

    summary: Mapped[str] = mapped_column(String(500), nullable=False)

    details: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
