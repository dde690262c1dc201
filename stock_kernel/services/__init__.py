"""Kernel services: numbering, ledger, tenant guard, unit of work, activity."""

from stock_kernel.services.activity_service import (
    ActivityEntry,
    ActivityRecorder,
    ActivitySink,
    DatabaseActivitySink,
    NullActivitySink,
)
from stock_kernel.services.item_service import ItemService
from stock_kernel.services.retry_service import retry_transient
from stock_kernel.services.sequence_service import DocumentType, SequenceService
from stock_kernel.services.stock_ledger import StockLedger, StockRequirement
from stock_kernel.services.tenant_guard import TenantContext, TenantGuard
from stock_kernel.services.tenant_service import TenantService
from stock_kernel.services.unit_of_work import UnitOfWork

__all__ = [
    "ActivityEntry",
    "ActivityRecorder",
    "ActivitySink",
    "DatabaseActivitySink",
    "DocumentType",
    "ItemService",
    "NullActivitySink",
    "SequenceService",
    "StockLedger",
    "StockRequirement",
    "TenantContext",
    "TenantGuard",
    "TenantService",
    "UnitOfWork",
    "retry_transient",
]
