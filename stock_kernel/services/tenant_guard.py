"""
TenantGuard -- tenant isolation for every read and write.

Responsibility:
    Resolves tenant-owned rows by id *within* one tenant, checks that the
    tenant is active, and binds the tenant to the session so the flush-time
    write guard (db/immutability.py) can reject rows carrying another
    tenant's id.

Architecture position:
    Kernel > Services.  Used by the Stock Ledger, the item/tenant services
    and every document service.

Invariants enforced:
    - Every lookup carries an explicit ``tenant_id`` filter.
    - An id that exists under another tenant is a defect: it raises
      CrossTenantAccessError and is never silently reported as missing.
      Only that tenant id (not the row) is read for the diagnosis.

Failure modes:
    - NotFoundError: no row with this id in any tenant.
    - CrossTenantAccessError: the row belongs to another tenant.
    - InactiveTenantError: tenant missing or deactivated.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, TypeVar
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.immutability import bind_session_tenant, unbind_session_tenant
from stock_kernel.exceptions import (
    CrossTenantAccessError,
    InactiveTenantError,
    NotFoundError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.tenant import Tenant

logger = get_logger("services.tenant_guard")

T = TypeVar("T")


@dataclass(frozen=True)
class TenantContext:
    """The authenticated caller: which tenant, which actor."""

    tenant_id: UUID
    actor_id: UUID
    correlation_id: str = field(default_factory=lambda: str(uuid4()))

    def __post_init__(self) -> None:
        for name in ("tenant_id", "actor_id"):
            value = getattr(self, name)
            if not isinstance(value, UUID):
                object.__setattr__(self, name, UUID(str(value)))


class TenantGuard:
    """Tenant-scoped lookups bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    def require_active(self, tenant_id: UUID) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id)
        if tenant is None or not tenant.is_active:
            raise InactiveTenantError(str(tenant_id))
        return tenant

    def get_owned(
        self,
        model: type[T],
        entity_id: UUID,
        tenant_id: UUID,
        *,
        for_update: bool = False,
    ) -> T:
        """
        Load ``model`` by id within ``tenant_id``.

        Raises:
            NotFoundError: No such row anywhere.
            CrossTenantAccessError: The id belongs to another tenant.
        """
        stmt = select(model).where(model.id == entity_id, model.tenant_id == tenant_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        obj = self.session.execute(stmt).scalar_one_or_none()
        if obj is not None:
            return obj

        owner = self.session.execute(
            select(model.tenant_id).where(model.id == entity_id)
        ).scalar_one_or_none()
        if owner is None:
            raise NotFoundError(model.__name__, str(entity_id))
        self._raise_cross_tenant(model.__name__, entity_id, tenant_id, owner)

    def check_owned(self, obj, tenant_id: UUID) -> None:
        """Hard-fail when an already loaded row belongs to another tenant."""
        if obj.tenant_id != tenant_id:
            self._raise_cross_tenant(type(obj).__name__, obj.id, tenant_id, obj.tenant_id)

    @staticmethod
    def _raise_cross_tenant(entity_type, entity_id, expected, actual):
        logger.error(
            "cross_tenant_access_blocked",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "expected_tenant_id": str(expected),
                "actual_tenant_id": str(actual),
            },
        )
        raise CrossTenantAccessError(
            entity_type, str(entity_id), str(expected), str(actual)
        )

    @contextmanager
    def bound(self, ctx: TenantContext) -> Iterator[TenantContext]:
        """Bind ``ctx`` to the session and to the log context."""
        bind_session_tenant(self.session, ctx.tenant_id)
        try:
            with LogContext.bind(
                tenant_id=str(ctx.tenant_id),
                actor_id=str(ctx.actor_id),
                correlation_id=ctx.correlation_id,
            ):
                yield ctx
        finally:
            unbind_session_tenant(self.session)
