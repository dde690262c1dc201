"""
Module: stock_kernel.models.tenant
Responsibility: ORM persistence for tenants ("boutiques"), the isolation
    unit that partitions every other row in the system.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class Tenant(Base):
    """An isolated business unit.  Deactivated tenants accept no operation."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Tenant {self.name} active={self.is_active}>"
