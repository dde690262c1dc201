"""
Module: stock_modules.invoicing.orm
Responsibility: Tables for customer invoices and their lines.
Architecture position: Modules > Invoicing > ORM.

Invariants enforced:
    - (tenant_id, number) and (tenant_id, seq) are unique.
    - ``discount`` and ``amount_paid`` are never negative (CHECK).
    - ``quote_id`` records the quote an invoice was converted from; the
      quote side holds the foreign key (``quotes.converted_invoice_id``).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_modules._document_orm import DocumentHeaderColumns, DocumentLineColumns


class Invoice(DocumentHeaderColumns, TrackedBase):
    """Customer invoice ("facture")."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_invoices_tenant_number"),
        UniqueConstraint("tenant_id", "seq", name="uq_invoices_tenant_seq"),
        CheckConstraint("discount >= 0", name="ck_invoices_discount"),
        CheckConstraint("amount_paid >= 0", name="ck_invoices_amount_paid"),
    )

    customer_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    payment_method: Mapped[str | None] = mapped_column(String(50), nullable=True)

    discount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=0)

    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=0
    )

    issued_at: Mapped[datetime | None] = mapped_column(nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    quote_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.position",
        lazy="selectin",
    )

    @property
    def is_issued(self) -> bool:
        return self.issued_at is not None and self.status != "ANNULEE"


class InvoiceLine(DocumentLineColumns, Base):
    __tablename__ = "invoice_lines"

    __table_args__ = DocumentLineColumns.line_constraints("invoice_lines")

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=False, index=True
    )

    invoice: Mapped[Invoice] = relationship(back_populates="lines")
