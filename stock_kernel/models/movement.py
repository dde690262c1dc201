"""
Module: stock_kernel.models.movement
Responsibility: ORM persistence for stock movements -- the append-only
    history behind every quantity-on-hand figure.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - quantity_after = quantity_before + quantity_delta (CHECK constraint).
    - (item_id, item_version) is unique: two writers can never both record
      the same "before" state of an item.
    - Rows are never updated or deleted (db/immutability.py).

Failure modes:
    - IntegrityError if two movements claim the same item_version.
    - ImmutabilityViolationError on UPDATE/DELETE.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, TenantScoped, UUIDString


class MovementKind(str, Enum):
    """Kind of quantity change.

    Sign convention: INBOUND and RETURN are positive, OUTBOUND and TRANSFER
    are negative, ADJUSTMENT and INVENTORY_CORRECTION go either way.
    """

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    ADJUSTMENT = "adjustment"
    INVENTORY_CORRECTION = "inventory_correction"
    RETURN = "return"
    TRANSFER = "transfer"


POSITIVE_KINDS = frozenset({MovementKind.INBOUND, MovementKind.RETURN})
NEGATIVE_KINDS = frozenset({MovementKind.OUTBOUND, MovementKind.TRANSFER})


class StockMovement(TenantScoped, Base):
    """One immutable quantity change on one Item."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("item_id", "item_version", name="uq_movement_item_version"),
        CheckConstraint(
            "quantity_after = quantity_before + quantity_delta",
            name="ck_movement_arithmetic",
        ),
        CheckConstraint("quantity_delta <> 0", name="ck_movement_nonzero"),
        Index("idx_movement_tenant_item", "tenant_id", "item_id"),
        Index("idx_movement_tenant_document", "tenant_id", "document_ref"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("items.id"),
        nullable=False,
    )

    item_version: Mapped[int] = mapped_column(Integer, nullable=False)

    kind: Mapped[str] = mapped_column(String(30), nullable=False)

    quantity_delta: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)

    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[str] = mapped_column(String(500), nullable=False)

    document_ref: Mapped[str | None] = mapped_column(String(50), nullable=True)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def to_dto(self) -> "MovementRecord":
        return MovementRecord(
            id=self.id,
            tenant_id=self.tenant_id,
            item_id=self.item_id,
            item_version=self.item_version,
            kind=MovementKind(self.kind),
            quantity_delta=self.quantity_delta,
            quantity_before=self.quantity_before,
            quantity_after=self.quantity_after,
            reason=self.reason,
            document_ref=self.document_ref,
            actor_id=self.actor_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.kind} {self.quantity_delta:+d} "
            f"{self.quantity_before}->{self.quantity_after}>"
        )


@dataclass(frozen=True)
class MovementRecord:
    """Read-side copy of a movement, detached from the session."""

    id: UUID
    tenant_id: UUID
    item_id: UUID
    item_version: int
    kind: MovementKind
    quantity_delta: int
    quantity_before: int
    quantity_after: int
    reason: str
    document_ref: str | None
    actor_id: UUID
    created_at: datetime
