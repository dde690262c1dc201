"""
Module: stock_modules.inventory_count.orm
Responsibility: Tables for physical inventory sessions and their lines.
Architecture position: Modules > Inventory count > ORM.

Invariants enforced:
    - (tenant_id, number) and (tenant_id, seq) are unique.
    - One line per item per session.
    - Sessions are Finalizable and lines FinalizableChild: once a session
      is VALIDE or ANNULE neither can change (db/immutability.py).
    - ``variance = physical_quantity - theoretical_quantity`` whenever
      the line is counted (CHECK).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import (
    Base,
    Finalizable,
    FinalizableChild,
    TenantScoped,
    TrackedBase,
    UUIDString,
)
from stock_modules.inventory_count.workflows import FINAL_STATUSES


class InventorySession(TenantScoped, Finalizable, TrackedBase):
    """Physical count of a tenant's stock."""

    __tablename__ = "inventory_sessions"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "number", name="uq_inventory_sessions_tenant_number"
        ),
        UniqueConstraint("tenant_id", "seq", name="uq_inventory_sessions_tenant_seq"),
    )

    __final_statuses__ = FINAL_STATUSES

    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    number: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False, active_history=True)

    started_at: Mapped[datetime] = mapped_column(nullable=False)

    ended_at: Mapped[datetime | None] = mapped_column(nullable=True)

    aggregate_variance: Mapped[int | None] = mapped_column(Integer, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["InventoryLine"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="InventoryLine.position",
        lazy="selectin",
    )

    @property
    def counted_lines(self) -> list["InventoryLine"]:
        return [line for line in self.lines if line.counted]


class InventoryLine(TenantScoped, FinalizableChild, Base):
    __tablename__ = "inventory_lines"

    __table_args__ = (
        UniqueConstraint("session_id", "item_id", name="uq_inventory_lines_item"),
        CheckConstraint(
            "physical_quantity IS NULL OR physical_quantity >= 0",
            name="ck_inventory_lines_physical",
        ),
        CheckConstraint(
            "(counted AND variance = physical_quantity - theoretical_quantity) OR "
            "(NOT counted AND physical_quantity IS NULL AND variance IS NULL)",
            name="ck_inventory_lines_variance",
        ),
    )

    __final_statuses__ = FINAL_STATUSES

    session_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("inventory_sessions.id"), nullable=False, index=True
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("items.id"), nullable=False
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    theoretical_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    physical_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)

    variance: Mapped[int | None] = mapped_column(Integer, nullable=True)

    counted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    counted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    session: Mapped[InventorySession] = relationship(back_populates="lines")

    def parent_status_query(self):
        return select(InventorySession.status).where(
            InventorySession.id == self.session_id
        )

    def record_count(self, physical_quantity: int, counted_at: datetime) -> None:
        self.physical_quantity = physical_quantity
        self.variance = physical_quantity - self.theoretical_quantity
        self.counted = True
        self.counted_at = counted_at
