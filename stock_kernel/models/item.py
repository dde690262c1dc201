"""
Module: stock_kernel.models.item
Responsibility: ORM persistence for stocked items and their cached
    quantity-on-hand.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``quantity_on_hand`` is written only by the Stock Ledger.  Any other
      write, an insert with a non-zero quantity, or a bulk UPDATE raises
      LedgerBypassError (listeners in db/immutability.py).
    - ``ledger_version`` counts the movements applied to the item.  It is
      bumped together with the quantity and stamped on each movement.
    - Items are never deleted; ``is_active`` is cleared instead.
"""

from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TenantScoped, TrackedBase


class Item(TenantScoped, TrackedBase):
    """A stocked good ("piece") owned by one tenant."""

    __tablename__ = "items"

    __table_args__ = (
        UniqueConstraint("tenant_id", "reference", name="uq_items_tenant_reference"),
        CheckConstraint("reorder_threshold >= 0", name="ck_items_reorder_threshold"),
        CheckConstraint("ledger_version >= 0", name="ck_items_ledger_version"),
    )

    reference: Mapped[str] = mapped_column(String(100), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    sale_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    cost_price: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    reorder_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Ledger-owned
    quantity_on_hand: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    ledger_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def quantity(self) -> int:
        """Current quantity-on-hand (read-only; use the Stock Ledger to change it)."""
        return self.quantity_on_hand

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_on_hand <= self.reorder_threshold

    def __repr__(self) -> str:
        return f"<Item {self.reference} qty={self.quantity_on_hand}>"
