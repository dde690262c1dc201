"""
Module: stock_modules.quotes.orm
Responsibility: Tables for customer quotes and their lines.
Architecture position: Modules > Quotes > ORM.

Invariants enforced:
    - (tenant_id, number) and (tenant_id, seq) are unique.
    - ``converted_invoice_id`` is set at most once, by conversion; it is
      cleared only when that draft invoice is deleted.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_modules._document_orm import DocumentHeaderColumns, DocumentLineColumns


class Quote(DocumentHeaderColumns, TrackedBase):
    """Customer quote ("devis")."""

    __tablename__ = "quotes"

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_quotes_tenant_number"),
        UniqueConstraint("tenant_id", "seq", name="uq_quotes_tenant_seq"),
        CheckConstraint("discount >= 0", name="ck_quotes_discount"),
    )

    customer_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    discount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=0)

    valid_until: Mapped[date] = mapped_column(Date, nullable=False)

    conditions: Mapped[str | None] = mapped_column(Text, nullable=True)

    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)

    converted_invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True
    )

    converted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["QuoteLine"]] = relationship(
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteLine.position",
        lazy="selectin",
    )


class QuoteLine(DocumentLineColumns, Base):
    __tablename__ = "quote_lines"

    __table_args__ = DocumentLineColumns.line_constraints("quote_lines")

    quote_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("quotes.id"), nullable=False, index=True
    )

    quote: Mapped[Quote] = relationship(back_populates="lines")
