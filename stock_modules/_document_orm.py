"""
Shared ORM columns for document headers and document lines.

Architecture position: Modules > shared ORM.  Each family's ``orm.py``
declares concrete tables from these mixins and adds its own columns,
foreign key to its header, and ``__table_args__``.

Invariants enforced:
    - Header totals are stored Numeric(38,9) and written only by
      DocumentService from ``compute_totals``.
    - ``number`` is unique per tenant per family (UNIQUE constraint in
      each table's ``__table_args__``).
    - Lines are ImmutableRow: never updated in place.
    - ``line_kind`` decides whether ``item_id`` is set (CHECK constraint).
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from stock_kernel.db.base import ImmutableRow, TenantScoped, UUIDString
from stock_kernel.domain.lines import CatalogLine, DocumentLine, FreeTextLine
from stock_kernel.domain.pricing import line_total

LINE_KIND_CATALOG = "catalog"
LINE_KIND_FREE_TEXT = "free_text"


class DocumentHeaderColumns(TenantScoped):
    """Numbering, status and stored totals."""

    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    number: Mapped[str] = mapped_column(String(30), nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=0)

    tax: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=0)

    total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=0)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def apply_totals(self, totals) -> None:
        self.subtotal = totals.subtotal
        self.tax = totals.tax
        self.total = totals.total
        if hasattr(self, "discount"):
            self.discount = totals.discount

    def domain_lines(self) -> list[DocumentLine]:
        return [line.to_domain() for line in self.lines]


class DocumentLineColumns(TenantScoped, ImmutableRow):
    """One line; catalog lines carry ``item_id``, free-text lines do not."""

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    line_kind: Mapped[str] = mapped_column(String(10), nullable=False)

    @declared_attr
    def item_id(cls) -> Mapped[UUID | None]:
        return mapped_column(UUIDString(), ForeignKey("items.id"), nullable=True)

    designation: Mapped[str | None] = mapped_column(String(255), nullable=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    tax_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=0)

    discount_rate: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=0
    )

    line_total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    return_to_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @classmethod
    def line_constraints(cls, table: str) -> tuple:
        return (
            CheckConstraint(
                f"(line_kind = '{LINE_KIND_CATALOG}' AND item_id IS NOT NULL) OR "
                f"(line_kind = '{LINE_KIND_FREE_TEXT}' AND item_id IS NULL)",
                name=f"ck_{table}_kind",
            ),
            CheckConstraint("quantity > 0", name=f"ck_{table}_quantity"),
        )

    @classmethod
    def from_domain(cls, line: DocumentLine, position: int, tenant_id, places: int = 2):
        common = dict(
            tenant_id=tenant_id,
            position=position,
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_rate=line.tax_rate,
            discount_rate=line.discount_rate,
            line_total=line_total(line, places),
            description=line.description,
        )
        if isinstance(line, CatalogLine):
            return cls(
                line_kind=LINE_KIND_CATALOG,
                item_id=line.item_id,
                designation=line.designation,
                return_to_stock=line.return_to_stock,
                **common,
            )
        return cls(
            line_kind=LINE_KIND_FREE_TEXT,
            item_id=None,
            designation=line.designation,
            return_to_stock=False,
            **common,
        )

    @property
    def is_stocked(self) -> bool:
        return self.line_kind == LINE_KIND_CATALOG

    def to_domain(self) -> DocumentLine:
        if self.is_stocked:
            return CatalogLine(
                item_id=self.item_id,
                quantity=self.quantity,
                unit_price=self.unit_price,
                tax_rate=self.tax_rate,
                discount_rate=self.discount_rate,
                designation=self.designation,
                description=self.description,
                return_to_stock=self.return_to_stock,
            )
        return FreeTextLine(
            designation=self.designation,
            quantity=self.quantity,
            unit_price=self.unit_price,
            tax_rate=self.tax_rate,
            discount_rate=self.discount_rate,
            description=self.description,
        )
