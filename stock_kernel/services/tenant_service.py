"""
TenantService -- create and deactivate tenants ("boutiques").

Tenants are the isolation boundary; creating one is the only operation
that is not itself scoped to an existing tenant.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from stock_kernel.db.engine import begin_write
from stock_kernel.logging_config import get_logger
from stock_kernel.models.tenant import Tenant
from stock_kernel.exceptions import NotFoundError, ValidationError

logger = get_logger("services.tenant")


class TenantService:
    """Owns its transactions: commits on success, rolls back on failure."""

    def __init__(self, session: Session):
        self._session = session

    def create_tenant(self, name: str) -> Tenant:
        if not name or not name.strip():
            raise ValidationError("tenant name is required", field="name")
        try:
            begin_write(self._session)
            tenant = Tenant(name=name.strip(), is_active=True)
            self._session.add(tenant)
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("tenant_created", extra={"tenant_id": str(tenant.id), "tenant_name": tenant.name})
        return tenant

    def deactivate_tenant(self, tenant_id: UUID) -> Tenant:
        """Every later operation on this tenant raises InactiveTenantError."""
        try:
            begin_write(self._session)
            tenant = self._session.get(Tenant, tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant", str(tenant_id))
            tenant.is_active = False
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise
        logger.info("tenant_deactivated", extra={"tenant_id": str(tenant_id)})
        return tenant
