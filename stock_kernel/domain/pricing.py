"""
Pricing -- document totals from line quantities, prices and rates.

Responsibility:
    The one place where line totals and document totals are computed.
    Totals are computed at creation (and on a replace-all-lines edit) and
    then stored; nothing recomputes them on read.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Rules:
    line_total = quantity * unit_price * (1 - discount_rate / 100)
    subtotal   = sum(line_total)
    tax        = sum(line_total * (subtotal - discount) / subtotal * tax_rate / 100)
    total      = subtotal - discount + tax

    The header discount is spread over the lines pro rata before tax is
    applied.  All amounts are rounded half-up to ``places``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from stock_kernel.domain.lines import DocumentLine
from stock_kernel.exceptions import ValidationError

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def quantize(amount: Decimal, places: int = 2) -> Decimal:
    return amount.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DocumentTotals:
    """Stored header totals of a document."""

    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


def line_total(line: DocumentLine, places: int = 2) -> Decimal:
    gross = Decimal(line.quantity) * line.unit_price
    net = gross * (1 - line.discount_rate / _HUNDRED)
    return quantize(net, places)


def compute_totals(
    lines: Sequence[DocumentLine],
    discount: Decimal | None = None,
    places: int = 2,
) -> DocumentTotals:
    """
    Compute header totals for ``lines`` with an optional header discount.

    Raises:
        ValidationError: discount is negative or exceeds the subtotal.
    """
    discount = quantize(Decimal(discount or 0), places)
    if discount < 0:
        raise ValidationError("discount cannot be negative", field="discount")

    totals = [line_total(line, places) for line in lines]
    subtotal = sum(totals, _ZERO)
    if discount > subtotal:
        raise ValidationError("discount exceeds subtotal", field="discount")

    ratio = (subtotal - discount) / subtotal if subtotal else Decimal(1)
    tax = _ZERO
    for line, amount in zip(lines, totals):
        tax += amount * ratio * line.tax_rate / _HUNDRED

    tax = quantize(tax, places)
    return DocumentTotals(
        subtotal=quantize(subtotal, places),
        discount=discount,
        tax=tax,
        total=quantize(subtotal - discount + tax, places),
    )
