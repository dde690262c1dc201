"""
Purchasing Service (``stock_modules.purchasing.service``).

Responsibility
--------------
Records supplier purchases.  Creation brings every line's quantity into
stock with one INBOUND movement per line, in the creation transaction.
Cancelling writes one OUTBOUND reversal per line.

Invariants
----------
- Each public method owns its transaction boundary (UnitOfWork).
- Purchases accept catalog lines only.
- Creation never checks stock levels: receiving goods may leave any
  resulting quantity.  The cancellation reversal does check, and is
  refused with InsufficientStockError when received goods were already
  consumed.

Usage::

    service = PurchaseService(session)
    purchase = service.create_purchase(
        ctx, [CatalogLine(item_id, 10, Decimal("4.50"))], supplier_ref="ACME",
    )
"""

from __future__ import annotations

from typing import Sequence
from uuid import UUID

from stock_kernel.domain.lines import DocumentLine
from stock_kernel.domain.workflow import StockEffect
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.movement import MovementKind
from stock_kernel.services.sequence_service import DocumentType
from stock_kernel.services.tenant_guard import TenantContext
from stock_modules._document_service import DocumentService
from stock_modules.purchasing.orm import Purchase, PurchaseLine
from stock_modules.purchasing.workflows import PURCHASE_WORKFLOW, PurchaseStatus

logger = get_logger("modules.purchasing.service")


class PurchaseService(DocumentService):
    """Supplier purchases and their stock effect."""

    document_type = DocumentType.PURCHASE
    workflow = PURCHASE_WORKFLOW
    header_model = Purchase
    line_model = PurchaseLine
    catalog_only = True

    def create_purchase(
        self,
        ctx: TenantContext,
        lines: Sequence[DocumentLine],
        supplier_ref: str | None = None,
        supplier_invoice_number: str | None = None,
        notes: str | None = None,
        status: PurchaseStatus | str | None = None,
    ) -> Purchase:
        """
        Create a purchase and receive its lines into stock.

        Postconditions:
            - One INBOUND movement per line, referencing the purchase number.
            - Number, header, lines and movements are committed together.

        Raises:
            EmptyDocumentError / ValidationError: bad lines or status.
            NotFoundError / CrossTenantAccessError: unknown or foreign item.
        """
        lines = self._validate(lines)
        status = PurchaseStatus(
            status or self._config.documents.purchase_default_status
        ).value
        if status not in self.workflow.creation_states:
            raise ValidationError(
                f"a purchase cannot be created as {status}", field="status"
            )

        with self._uow.begin(ctx, "create_purchase") as uow:
            self._check_items(uow, lines)
            purchase = self._new_header(
                uow,
                status,
                supplier_ref=supplier_ref,
                supplier_invoice_number=supplier_invoice_number,
                purchased_at=self._clock.now(),
                notes=notes,
            )
            self._write_lines(uow, purchase, lines)
            self._stock_in(
                uow, purchase, MovementKind.INBOUND, f"Purchase {purchase.number}"
            )
            self._record_created(uow, purchase)

        return purchase

    def update_purchase_status(
        self,
        ctx: TenantContext,
        purchase_id: UUID,
        status: PurchaseStatus | str,
    ) -> Purchase:
        """
        Move a purchase along its workflow.

        Cancelling reverses every line with an OUTBOUND movement; the
        whole cancellation is refused if any item no longer holds the
        received quantity.
        """
        status = PurchaseStatus(status).value
        with self._uow.begin(ctx, "update_purchase_status") as uow:
            purchase = self._load_for_update(uow, purchase_id)
            transition = self._transition(uow, purchase, status)
            if transition.stock_effect is StockEffect.REVERSE_INBOUND:
                self._stock_out(uow, purchase, f"Purchase {purchase.number} cancelled")
        return purchase

    def delete_purchase(self, ctx: TenantContext, purchase_id: UUID) -> None:
        """
        Delete a purchase.

        Purchases move stock at creation, so a purchase that received
        anything is refused with DocumentHasMovementsError; cancel it
        instead.
        """
        self._delete(ctx, purchase_id)
