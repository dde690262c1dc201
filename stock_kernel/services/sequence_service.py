"""
SequenceService -- per-tenant document numbering via locked counter rows.

Responsibility:
    Provides strictly increasing document numbers per (tenant, document
    type).  Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) to guarantee uniqueness under concurrent
    access from several processes.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by every document service inside its unit of work.

Invariants enforced:
    - No duplicates: the aggregate-max-plus-one anti-pattern is FORBIDDEN;
      the locked counter row is the sole source of truth for the next value.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value; gaps are acceptable.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
    - OperationalError: lock wait timed out (surfaced as a transient
      failure by the unit of work).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, String, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from stock_kernel.db.base import Base, UUIDString
from stock_kernel.logging_config import get_logger
from stock_kernel.services.base import BaseService

logger = get_logger("services.sequence")


class DocumentType(str, Enum):
    """Numbered document families."""

    PURCHASE = "PURCHASE"
    INVOICE = "INVOICE"
    QUOTE = "QUOTE"
    CREDIT_NOTE = "CREDIT_NOTE"
    INVENTORY = "INVENTORY"


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row holds the last number handed out for one (tenant, document
    type).  Row-level locking serializes allocation.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "document_type", name="uq_sequence_tenant_document_type"
        ),
    )

    tenant_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    document_type: Mapped[str] = mapped_column(String(30), nullable=False)

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService(BaseService):
    """
    Service for allocating transactional document numbers.

    Contract:
        ``allocate(tenant_id, document_type)`` returns an integer never
        returned before for that pair once the caller commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT promise gap-free numbering.

    Usage:
        seq = sequence_service.allocate(tenant_id, DocumentType.PURCHASE)
        number = sequence_service.format_number(DocumentType.PURCHASE, seq)
    """

    def __init__(self, session: Session, numbering=None):
        super().__init__(session)
        if numbering is None:
            from stock_config import get_active_config

            numbering = get_active_config().numbering
        self._numbering = numbering

    def _locked_counter(self, tenant_id: UUID, document_type: str):
        return self.session.execute(
            select(SequenceCounter)
            .where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.document_type == document_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def allocate(self, tenant_id: UUID, document_type: DocumentType | str) -> int:
        """
        Lock (or create) the counter row, increment it and return the value.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value already
              committed for this (tenant, document type).
            - The counter row stays locked until the transaction completes.
        """
        document_type = DocumentType(document_type).value
        counter = self._locked_counter(tenant_id, document_type)

        if counter is None:
            # First use: another caller may create the row at the same time.
            # The savepoint keeps the rest of the transaction intact.
            savepoint = self.session.begin_nested()
            try:
                counter = SequenceCounter(
                    tenant_id=tenant_id,
                    document_type=document_type,
                    current_value=1,
                )
                self.session.add(counter)
                self.session.flush()
                savepoint.commit()
                self._log(tenant_id, document_type, 1)
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={
                        "tenant_id": str(tenant_id),
                        "document_type": document_type,
                    },
                )
                savepoint.rollback()
                counter = self._locked_counter(tenant_id, document_type)
                if counter is None:
                    raise

        counter.current_value += 1
        self.session.flush()
        self._log(tenant_id, document_type, counter.current_value)
        return counter.current_value

    def allocate_number(
        self, tenant_id: UUID, document_type: DocumentType | str
    ) -> tuple[int, str]:
        """Allocate and render in one call: ``(7, "F-0007")``."""
        value = self.allocate(tenant_id, document_type)
        return value, self.format_number(document_type, value)

    def current_value(self, tenant_id: UUID, document_type: DocumentType | str) -> int:
        """Last allocated value, 0 when nothing was allocated yet."""
        value = self.session.execute(
            select(SequenceCounter.current_value).where(
                SequenceCounter.tenant_id == tenant_id,
                SequenceCounter.document_type == DocumentType(document_type).value,
            )
        ).scalar_one_or_none()
        return value or 0

    def format_number(self, document_type: DocumentType | str, value: int) -> str:
        prefix = self._numbering.prefix_for(DocumentType(document_type).value)
        return f"{prefix}-{value:0{self._numbering.width}d}"

    @staticmethod
    def _log(tenant_id, document_type: str, value: int) -> None:
        logger.debug(
            "sequence_allocated",
            extra={
                "tenant_id": str(tenant_id),
                "document_type": document_type,
                "value": value,
            },
        )
