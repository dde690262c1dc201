"""
Module: stock_modules.purchasing.orm
Responsibility: Tables for supplier purchases and their lines.
Architecture position: Modules > Purchasing > ORM.  Columns shared with the
    other families come from stock_modules._document_orm.

Invariants enforced:
    - (tenant_id, number) and (tenant_id, seq) are unique.
    - Purchase lines are always catalog lines (CHECK constraint).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_modules._document_orm import (
    LINE_KIND_CATALOG,
    DocumentHeaderColumns,
    DocumentLineColumns,
)


class Purchase(DocumentHeaderColumns, TrackedBase):
    """Supplier purchase ("achat")."""

    __tablename__ = "purchases"

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_purchases_tenant_number"),
        UniqueConstraint("tenant_id", "seq", name="uq_purchases_tenant_seq"),
    )

    supplier_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    supplier_invoice_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )

    purchased_at: Mapped[datetime] = mapped_column(nullable=False)

    lines: Mapped[list["PurchaseLine"]] = relationship(
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="PurchaseLine.position",
        lazy="selectin",
    )


class PurchaseLine(DocumentLineColumns, Base):
    __tablename__ = "purchase_lines"

    __table_args__ = DocumentLineColumns.line_constraints("purchase_lines") + (
        CheckConstraint(
            f"line_kind = '{LINE_KIND_CATALOG}'", name="ck_purchase_lines_catalog_only"
        ),
    )

    purchase_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("purchases.id"), nullable=False, index=True
    )

    purchase: Mapped[Purchase] = relationship(back_populates="lines")
