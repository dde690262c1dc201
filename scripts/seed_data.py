#!/usr/bin/env python3
"""
Seed the database with a demo tenant and a realistic document flow.

Drops all tables, recreates them, then runs: catalog creation, a supplier
purchase, a quote converted into an invoice, a credit note and a physical
inventory.  Prints every movement and checks conservation per item.

Usage:
    python3 scripts/seed_data.py
    STOCK_DATABASE_URL=sqlite:///demo.db python3 scripts/seed_data.py
"""

import sys
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    from stock_config import get_active_config
    from stock_kernel.db.engine import (
        create_tables,
        drop_tables,
        get_session,
        get_session_factory,
        init_engine_from_config,
        reset_engine,
    )
    from stock_kernel.db.immutability import register_integrity_listeners
    from stock_kernel.domain.lines import CatalogLine, FreeTextLine
    from stock_kernel.logging_config import configure_logging
    from stock_kernel.selectors import ItemSelector, MovementSelector
    from stock_kernel.services import (
        DatabaseActivitySink,
        ItemService,
        TenantContext,
        TenantService,
    )
    from stock_modules._orm_registry import import_all_orm_models
    from stock_modules.credit_notes.service import CreditNoteService
    from stock_modules.inventory_count.service import InventoryService
    from stock_modules.invoicing.service import InvoiceService
    from stock_modules.purchasing.service import PurchaseService
    from stock_modules.quotes.service import QuoteService

    config = get_active_config()
    configure_logging(level=config.logging.level)
    init_engine_from_config(config.database)
    import_all_orm_models()
    drop_tables()
    create_tables()
    register_integrity_listeners()

    session = get_session()
    sink = DatabaseActivitySink(get_session_factory())
    try:
        tenant = TenantService(session).create_tenant("Demo boutique")
        ctx = TenantContext(tenant_id=tenant.id, actor_id=uuid4())

        items = ItemService(session, activity_sink=sink)
        filter_ = items.create_item(
            ctx, "FLT-100", "Oil filter", Decimal("12.50"), Decimal("6.10"), 5
        )
        pads = items.create_item(
            ctx, "BRK-220", "Brake pads", Decimal("45.00"), Decimal("21.00"), 4,
            opening_quantity=6,
        )

        purchase = PurchaseService(session, activity_sink=sink).create_purchase(
            ctx,
            [
                CatalogLine(filter_.id, 20, Decimal("6.10"), tax_rate=Decimal("20")),
                CatalogLine(pads.id, 10, Decimal("21.00"), tax_rate=Decimal("20")),
            ],
            supplier_ref="ACME Parts",
        )
        print(f"{purchase.number}: total {purchase.total}")

        quotes = QuoteService(session, activity_sink=sink)
        quote = quotes.create_quote(
            ctx,
            [
                CatalogLine(filter_.id, 2, Decimal("12.50"), tax_rate=Decimal("20")),
                FreeTextLine("Labour", 1, Decimal("35.00"), tax_rate=Decimal("20")),
            ],
            customer_ref="C-001",
        )
        quotes.send_quote(ctx, quote.id)
        quotes.accept_quote(ctx, quote.id)
        invoice = quotes.convert_quote_to_invoice(ctx, quote.id)
        invoice = InvoiceService(session, activity_sink=sink).update_invoice_status(
            ctx, invoice.id, "PAYEE"
        )
        print(f"{quote.number} -> {invoice.number}: total {invoice.total}")

        credit_notes = CreditNoteService(session, activity_sink=sink)
        credit_note = credit_notes.create_credit_note_from_invoice(
            ctx, invoice.id, "Wrong filter model"
        )
        credit_notes.validate_credit_note(ctx, credit_note.id)
        print(f"{credit_note.number}: validated")

        inventory = InventoryService(session, activity_sink=sink)
        count = inventory.create_inventory_session(ctx)
        for line in count.lines:
            inventory.update_inventory_line(
                ctx, count.id, line.id, max(line.theoretical_quantity - 1, 0)
            )
        count = inventory.set_inventory_status(ctx, count.id, "VALIDE")
        print(f"{count.number}: aggregate variance {count.aggregate_variance}")

        movements = MovementSelector(session)
        for movement in reversed(movements.list_movements(tenant.id)):
            print(
                f"  {movement.kind.value:<22} {movement.quantity_delta:+5d} "
                f"{movement.quantity_before:>4} -> {movement.quantity_after:<4} "
                f"{movement.document_ref or ''}"
            )
        for item in ItemSelector(session).active_items(tenant.id):
            report = movements.verify_conservation(tenant.id, item.id)
            status = "ok" if report.holds else "BROKEN"
            print(f"{item.reference}: on hand {item.quantity} ({status})")
        session.commit()
    finally:
        session.close()
        reset_engine()
    return 0


if __name__ == "__main__":
    sys.exit(main())
