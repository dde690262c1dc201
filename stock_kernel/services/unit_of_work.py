"""
UnitOfWork -- one atomic, tenant-bound transaction per public operation.

Responsibility:
    Owns the transaction boundary for the services that expose operations
    to the outer layer (item, tenant and document services).  Inside one
    ``with uow.begin(ctx, "create_invoice"):`` block the caller allocates
    numbers, writes headers and lines and applies movements; the block
    commits them together or rolls every one of them back.

Architecture position:
    Kernel > Services.  Composes TenantGuard, StockLedger, SequenceService
    and ActivityRecorder over a single session.

Invariants enforced:
    - Atomicity: commit on success, rollback on any exception.  The
      transaction is opened with ``begin_write`` (write lock at BEGIN on
      SQLite).  A failed
      attempt leaves no document, number, line or movement behind.
    - Tenant binding: the session is bound to ``ctx.tenant_id`` for the
      whole block; the tenant must be active.
    - Transient store failures (lock wait timeout, deadlock, SQLite busy,
      lost connection) surface as TransientStoreError, safe to retry as a
      whole with ``retry_transient``.
    - Activity entries are emitted only after commit.
"""

from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from stock_kernel.db.engine import begin_write, is_transient_store_error
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.exceptions import StockKernelError, TransientStoreError
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.item import Item
from stock_kernel.models.movement import MovementKind, StockMovement
from stock_kernel.services.activity_service import (
    ActivityEntry,
    ActivityRecorder,
    ActivitySink,
)
from stock_kernel.services.sequence_service import SequenceService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.tenant_guard import TenantContext, TenantGuard

logger = get_logger("services.unit_of_work")


class UnitOfWork:
    """Transaction owner shared by the operation-level services."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        activity_sink: ActivitySink | None = None,
        numbering=None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.guard = TenantGuard(session)
        self.ledger = StockLedger(session, self.clock)
        self.sequences = SequenceService(session, numbering)
        self.activity = ActivityRecorder(activity_sink)
        self._ctx: TenantContext | None = None

    @contextmanager
    def begin(
        self,
        ctx: TenantContext,
        operation: str,
        *,
        require_active_tenant: bool = True,
    ) -> Iterator["UnitOfWork"]:
        """
        Run the block as one transaction bound to ``ctx``.

        Raises:
            TransientStoreError: retryable store failure; nothing persisted.
            Any exception raised by the block, after rollback.
        """
        self.activity.clear()
        self._ctx = ctx
        try:
            begin_write(self.session)
            with self.guard.bound(ctx):
                LogContext.set(operation=operation)
                if require_active_tenant:
                    self.guard.require_active(ctx.tenant_id)
                yield self
                self.session.commit()
        except DBAPIError as exc:
            self._rollback(operation, exc)
            if is_transient_store_error(exc):
                raise TransientStoreError(operation, str(exc.orig or exc)) from exc
            raise
        except Exception as exc:
            self._rollback(operation, exc)
            raise
        finally:
            self._ctx = None

        logger.debug("transaction_committed", extra={"operation": operation})
        self.activity.emit()

    def _rollback(self, operation: str, exc: Exception) -> None:
        self.session.rollback()
        self.activity.clear()
        logger.warning(
            "transaction_rolled_back",
            extra={
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_code": getattr(exc, "code", None)
                if isinstance(exc, StockKernelError)
                else None,
            },
        )

    @property
    def ctx(self) -> TenantContext:
        if self._ctx is None:
            raise RuntimeError("No active unit of work")
        return self._ctx

    def set_document_ref(self, document_ref: str) -> None:
        LogContext.set(document_ref=document_ref)

    def allocate_number(self, document_type) -> tuple[int, str]:
        seq, number = self.sequences.allocate_number(self.ctx.tenant_id, document_type)
        self.set_document_ref(number)
        return seq, number

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id,
        summary: str,
        **details,
    ) -> None:
        ctx = self.ctx
        self.activity.add(
            ActivityEntry(
                tenant_id=ctx.tenant_id,
                actor_id=ctx.actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                summary=summary,
                occurred_at=self.clock.now(),
                details=details,
            )
        )

    def move_stock(
        self,
        item: Item | UUID,
        kind: MovementKind,
        quantity_delta: int,
        reason: str,
        document_ref: str | None = None,
        *,
        allow_negative: bool = True,
    ) -> StockMovement:
        """Apply one movement through the ledger and queue its activity entry."""
        ctx = self.ctx
        movement = self.ledger.apply(
            item,
            ctx.tenant_id,
            kind,
            quantity_delta,
            reason,
            document_ref,
            ctx.actor_id,
            allow_negative=allow_negative,
        )
        self.record(
            "stock_movement",
            "StockMovement",
            movement.id,
            reason,
            item_id=movement.item_id,
            kind=movement.kind,
            quantity_delta=movement.quantity_delta,
            quantity_after=movement.quantity_after,
            document_ref=document_ref,
        )
        return movement
