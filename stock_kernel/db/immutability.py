"""
ORM-Level Integrity Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

Quantity-on-hand is the one piece of shared mutable state in the system.  It
must only ever move through the Stock Ledger, and every move must leave an
immutable movement behind.  Convention is not enough: this module turns the
rules into flush-time checks so that a stray ``item.quantity_on_hand = 3``
or ``session.execute(update(Item)...)`` fails instead of silently breaking
the conservation invariant.

    session.flush()
         |
         v
    [before_flush]   --> _check_tenant_writes()       --> CrossTenantAccessError
         |
         v
    [before_insert]  --> _check_item_insert()         --> LedgerBypassError
    [before_update]  --> _check_item_quantity_grant() --> LedgerBypassError
                     --> _check_*_immutability()      --> ImmutabilityViolationError
    [before_delete]  --> _check_*_delete()            --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

    session.execute(update(...)/delete(...))
         |
         v
    [do_orm_execute] --> _check_bulk_statements()     --> LedgerBypassError /
                                                          ImmutabilityViolationError

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | Rule
------------------------|---------------------------------------------------
StockMovement           | ALWAYS immutable, never deleted
Item.quantity_on_hand   | Changes only under a ledger grant for that value
Item.ledger_version     | Changes only together with a granted quantity
Item                    | Never deleted (deactivate instead)
ImmutableRow (lines)    | Never updated in place; replace-all re-inserts
Finalizable (headers)   | Read-only once status is final
FinalizableChild        | Read-only once the parent's status is final
TenantScoped            | Writes must match the tenant bound to the session

===============================================================================
LEDGER GRANTS
===============================================================================

``grant_quantity_write(session, item_id, new_quantity)`` is called by the
Stock Ledger immediately before it assigns the new quantity.  The grant is
stored in ``session.info`` and consumed by the before_update listener; a
quantity change with no matching grant is a bypass.

===============================================================================
USAGE
===============================================================================

    from stock_kernel.db.immutability import register_integrity_listeners
    register_integrity_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_integrity_listeners()
"""

from sqlalchemy import event
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from stock_kernel.db.base import (
    Finalizable,
    FinalizableChild,
    ImmutableRow,
    TenantScoped,
)
from stock_kernel.exceptions import (
    CrossTenantAccessError,
    ImmutabilityViolationError,
    LedgerBypassError,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_GRANTS_KEY = "stock_ledger_grants"
TENANT_KEY = "tenant_id"


# ---------------------------------------------------------------------------
# Session helpers used by the kernel services
# ---------------------------------------------------------------------------


def grant_quantity_write(session: Session, item_id, new_quantity: int) -> None:
    """Authorize the next flush to write ``new_quantity`` on ``item_id``."""
    session.info.setdefault(_GRANTS_KEY, {})[str(item_id)] = new_quantity


def bind_session_tenant(session: Session, tenant_id) -> None:
    session.info[TENANT_KEY] = str(tenant_id)


def unbind_session_tenant(session: Session) -> None:
    session.info.pop(TENANT_KEY, None)
    session.info.pop(_GRANTS_KEY, None)


def _block(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(entity_id), reason)


# ---------------------------------------------------------------------------
# Tenant write guard
# ---------------------------------------------------------------------------


def _check_tenant_writes(session, flush_context, instances):
    """
    Every tenant-scoped row written through a tenant-bound session must
    carry that tenant's id.
    """
    bound = session.info.get(TENANT_KEY)
    if bound is None:
        return

    for obj in list(session.new) + list(session.dirty) + list(session.deleted):
        if not isinstance(obj, TenantScoped):
            continue
        actual = obj.tenant_id
        if actual is None or str(actual) != bound:
            logger.error(
                "cross_tenant_write_blocked",
                extra={
                    "entity_type": type(obj).__name__,
                    "entity_id": str(obj.id),
                    "expected_tenant_id": bound,
                    "actual_tenant_id": str(actual),
                },
            )
            raise CrossTenantAccessError(
                type(obj).__name__, str(obj.id), bound, str(actual)
            )


# ---------------------------------------------------------------------------
# Item quantity
# ---------------------------------------------------------------------------


def _check_item_insert(mapper, connection, target):
    if target.quantity_on_hand not in (None, 0) or target.ledger_version not in (None, 0):
        raise LedgerBypassError(
            str(target.id),
            "items are created with zero stock; opening stock is a movement",
        )


def _check_item_quantity_grant(mapper, connection, target):
    """
    Allow a quantity change only when the Stock Ledger granted exactly
    that value in this session.
    """
    qty_history = get_history(target, "quantity_on_hand")
    version_history = get_history(target, "ledger_version")
    if not qty_history.has_changes() and not version_history.has_changes():
        return

    item_id = str(target.id)
    session = Session.object_session(target)
    grants = session.info.get(_GRANTS_KEY, {}) if session is not None else {}
    granted = grants.pop(item_id, None)

    if granted is None or granted != target.quantity_on_hand:
        logger.error(
            "ledger_bypass_blocked",
            extra={
                "item_id": item_id,
                "attempted_quantity": target.quantity_on_hand,
                "granted_quantity": granted,
            },
        )
        raise LedgerBypassError(item_id, "quantity_on_hand written without a ledger grant")

    if not version_history.has_changes():
        raise LedgerBypassError(item_id, "quantity changed without a ledger version bump")


def _check_item_delete(mapper, connection, target):
    _block("Item", target.id, "DELETE", "items are deactivated, never deleted")


# ---------------------------------------------------------------------------
# Movements
# ---------------------------------------------------------------------------


def _check_movement_immutability(mapper, connection, target):
    _block("StockMovement", target.id, "UPDATE", "movements are append-only")


def _check_movement_delete(mapper, connection, target):
    _block("StockMovement", target.id, "DELETE", "movements are append-only")


# ---------------------------------------------------------------------------
# Document lines and finalizable headers
# ---------------------------------------------------------------------------


def _check_immutable_row(mapper, connection, target):
    _block(
        type(target).__name__,
        target.id,
        "UPDATE",
        "document lines are replaced, never edited in place",
    )


def _was_final(target) -> bool:
    history = get_history(target, "status")
    previous = history.deleted or history.unchanged
    return any(_status_value(s) in target.__final_statuses__ for s in previous or ())


def _check_finalizable_update(mapper, connection, target):
    if _was_final(target):
        _block(type(target).__name__, target.id, "UPDATE", "document is final")


def _check_finalizable_delete(mapper, connection, target):
    if _status_value(target.status) in target.__final_statuses__ or _was_final(target):
        _block(type(target).__name__, target.id, "DELETE", "document is final")


def _check_finalizable_child(mapper, connection, target):
    status = connection.execute(target.parent_status_query()).scalar()
    if status is not None and _status_value(status) in target.__final_statuses__:
        _block(type(target).__name__, target.id, "UPDATE", "parent document is final")


def _check_finalizable_child_delete(mapper, connection, target):
    _check_finalizable_child(mapper, connection, target)


def _status_value(status) -> str:
    return getattr(status, "value", status)


# ---------------------------------------------------------------------------
# Bulk statements
# ---------------------------------------------------------------------------


def _check_bulk_statements(orm_execute_state):
    """ORM bulk UPDATE/DELETE bypass per-row listeners; refuse them here."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return

    from stock_kernel.models.item import Item
    from stock_kernel.models.movement import StockMovement

    mapper = orm_execute_state.bind_mapper
    if mapper is None:
        return
    operation = "UPDATE" if orm_execute_state.is_update else "DELETE"
    if issubclass(mapper.class_, Item):
        logger.error("ledger_bypass_blocked", extra={"operation": f"bulk {operation}"})
        raise LedgerBypassError("*", f"bulk {operation} on items")
    if issubclass(mapper.class_, StockMovement):
        _block("StockMovement", "*", f"bulk {operation}", "movements are append-only")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _mixin_listeners():
    """Per-class listeners for every mapped subclass of the row mixins."""
    from stock_kernel.db.base import Base

    found = []
    for mapper in Base.registry.mappers:
        cls = mapper.class_
        if issubclass(cls, ImmutableRow):
            found.append((cls, "before_update", _check_immutable_row))
        if issubclass(cls, Finalizable):
            found.append((cls, "before_update", _check_finalizable_update))
            found.append((cls, "before_delete", _check_finalizable_delete))
        if issubclass(cls, FinalizableChild):
            found.append((cls, "before_update", _check_finalizable_child))
            found.append((cls, "before_delete", _check_finalizable_child_delete))
    return found


def _listeners():
    from stock_kernel.models.item import Item
    from stock_kernel.models.movement import StockMovement

    return [
        (Session, "before_flush", _check_tenant_writes),
        (Session, "do_orm_execute", _check_bulk_statements),
        (Item, "before_insert", _check_item_insert),
        (Item, "before_update", _check_item_quantity_grant),
        (Item, "before_delete", _check_item_delete),
        (StockMovement, "before_update", _check_movement_immutability),
        (StockMovement, "before_delete", _check_movement_delete),
    ] + _mixin_listeners()


def register_integrity_listeners():
    """
    Register all integrity enforcement event listeners.

    Document tables are found through the declarative registry, so call
    this after every ORM model is imported (``create_tables()`` or
    ``stock_modules._orm_registry.import_all_orm_models()``).

    Idempotent: listeners already registered are skipped.
    """
    from stock_kernel.models import import_kernel_models

    import_kernel_models()
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Safely remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_integrity_listeners():
    """
    Remove integrity enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate the rules to verify detection.
    """
    for target, event_name, fn in _listeners():
        _safe_remove_listener(target, event_name, fn)
