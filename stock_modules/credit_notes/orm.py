"""
Module: stock_modules.credit_notes.orm
Responsibility: Tables for customer credit notes and their lines.
Architecture position: Modules > Credit notes > ORM.

Invariants enforced:
    - (tenant_id, number) and (tenant_id, seq) are unique.
    - ``reason`` is required.
    - ``invoice_id`` is optional; when set it names an invoice of the
      same tenant (checked by the service).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from stock_kernel.db.base import Base, TrackedBase, UUIDString
from stock_modules._document_orm import DocumentHeaderColumns, DocumentLineColumns


class CreditNote(DocumentHeaderColumns, TrackedBase):
    """Customer credit note ("avoir")."""

    __tablename__ = "credit_notes"

    __table_args__ = (
        UniqueConstraint("tenant_id", "number", name="uq_credit_notes_tenant_number"),
        UniqueConstraint("tenant_id", "seq", name="uq_credit_notes_tenant_seq"),
    )

    reason: Mapped[str] = mapped_column(Text, nullable=False)

    customer_ref: Mapped[str | None] = mapped_column(String(100), nullable=True)

    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("invoices.id"), nullable=True, index=True
    )

    validated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    refunded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["CreditNoteLine"]] = relationship(
        back_populates="credit_note",
        cascade="all, delete-orphan",
        order_by="CreditNoteLine.position",
        lazy="selectin",
    )


class CreditNoteLine(DocumentLineColumns, Base):
    __tablename__ = "credit_note_lines"

    __table_args__ = DocumentLineColumns.line_constraints("credit_note_lines")

    credit_note_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("credit_notes.id"), nullable=False, index=True
    )

    credit_note: Mapped[CreditNote] = relationship(back_populates="lines")
