"""
Document line variants.

A document line either references a catalog Item or is free text.  The two
are distinct types so stock logic never has to test a nullable item id:
only ``CatalogLine`` instances can reach the Stock Ledger.

Both variants validate on construction and raise ``ValidationError`` with
the offending field.  ``line_index`` is attached by ``validate_lines``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Iterable, Union
from uuid import UUID

from stock_kernel.exceptions import EmptyDocumentError, ValidationError

_HUNDRED = Decimal("100")


def _as_decimal(value, field: str) -> Decimal:
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a decimal number", field=field)


def _check_common(line) -> None:
    if isinstance(line.quantity, bool) or not isinstance(line.quantity, int):
        raise ValidationError("quantity must be an integer", field="quantity")
    if line.quantity <= 0:
        raise ValidationError("quantity must be positive", field="quantity")
    object.__setattr__(line, "unit_price", _as_decimal(line.unit_price, "unit_price"))
    object.__setattr__(line, "tax_rate", _as_decimal(line.tax_rate, "tax_rate"))
    object.__setattr__(
        line, "discount_rate", _as_decimal(line.discount_rate, "discount_rate")
    )
    if line.unit_price <= 0:
        raise ValidationError("unit_price must be positive", field="unit_price")
    if not (0 <= line.tax_rate <= _HUNDRED):
        raise ValidationError("tax_rate must be between 0 and 100", field="tax_rate")
    if not (0 <= line.discount_rate <= _HUNDRED):
        raise ValidationError(
            "discount_rate must be between 0 and 100", field="discount_rate"
        )


@dataclass(frozen=True)
class CatalogLine:
    """A line that references a stocked Item.

    ``return_to_stock`` only matters on credit notes.
    """

    item_id: UUID
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")
    designation: str | None = None
    description: str | None = None
    return_to_stock: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.item_id, UUID):
            try:
                object.__setattr__(self, "item_id", UUID(str(self.item_id)))
            except ValueError:
                raise ValidationError("item_id must be a UUID", field="item_id")
        _check_common(self)

    @property
    def is_stocked(self) -> bool:
        return True


@dataclass(frozen=True)
class FreeTextLine:
    """A line with no catalog Item; never touches stock."""

    designation: str
    quantity: int
    unit_price: Decimal
    tax_rate: Decimal = Decimal("0")
    discount_rate: Decimal = Decimal("0")
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.designation or not self.designation.strip():
            raise ValidationError(
                "free-text line requires a designation", field="designation"
            )
        _check_common(self)

    @property
    def is_stocked(self) -> bool:
        return False


DocumentLine = Union[CatalogLine, FreeTextLine]


def validate_lines(
    document_type: str,
    lines: Iterable[DocumentLine],
    *,
    catalog_only: bool = False,
) -> list[DocumentLine]:
    """
    Check a line list before any write.

    Raises:
        EmptyDocumentError: No line given.
        ValidationError: A line is not a known variant, or a free-text line
            was given where only catalog lines are accepted.  ``line_index``
            identifies the offending line.
    """
    result = list(lines)
    if not result:
        raise EmptyDocumentError(document_type)
    for index, line in enumerate(result):
        if not isinstance(line, (CatalogLine, FreeTextLine)):
            raise ValidationError(
                f"line {index} is not a document line", field="lines", line_index=index
            )
        if catalog_only and not isinstance(line, CatalogLine):
            raise ValidationError(
                f"{document_type} accepts catalog lines only",
                field="item_id",
                line_index=index,
            )
    return result


def with_return_flag(line: DocumentLine, flag: bool) -> DocumentLine:
    if isinstance(line, CatalogLine):
        return replace(line, return_to_stock=flag)
    return line
