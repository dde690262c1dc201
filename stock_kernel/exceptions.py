"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The routing layer above the kernel maps errors to responses. It must be able
to do that by TYPE and CODE, never by parsing message strings:

    try:
        invoice_service.create_invoice(ctx, lines)
    except InsufficientStockError as e:
        api_response(code=e.code, item=e.item_id, shortfall=e.shortfall)
    except ValidationError as e:
        api_response(code=e.code, field=e.field, line=e.line_index)

Every exception:
  1. Has a CODE class attribute (machine-readable, API-safe)
  2. Carries its context as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |   +-- MovementSignError
    |   +-- InvalidTransitionError
    |   +-- EmptyDocumentError
    |   +-- DocumentNotEditableError
    |   +-- DocumentHasMovementsError
    |   +-- QuoteAlreadyConvertedError
    |   +-- NothingCountedError
    |
    +-- NotFoundError
    |
    +-- InsufficientStockError
    |
    +-- TenantError
    |   +-- CrossTenantAccessError
    |   +-- InactiveTenantError
    |
    +-- ConcurrencyError
    |   +-- TransientStoreError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError
        +-- LedgerBypassError

===============================================================================
HANDLING PATTERNS
===============================================================================

1. VALIDATION (no side effect happened):
    ValidationError and its subclasses are raised before or at the start of
    the unit of work. Nothing was written.

2. INSUFFICIENT STOCK (whole document rejected):
    The transaction rolled back. No header, no line, no number, no movement.

3. TRANSIENT (safe to retry the WHOLE operation):
    except TransientStoreError:
        retry_transient(lambda: service.create_purchase(...))

4. CROSS-TENANT / IMMUTABILITY (programming defects):
    Never caught by business code. Let them surface and page someone.
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation


class ValidationError(StockKernelError):
    """Bad input shape or a constraint violated before any write."""

    code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        line_index: int | None = None,
    ):
        self.field = field
        self.line_index = line_index
        super().__init__(message)


class MovementSignError(ValidationError):
    """Quantity delta sign does not match the movement kind."""

    code: str = "MOVEMENT_SIGN_MISMATCH"

    def __init__(self, kind: str, quantity_delta: int):
        self.kind = kind
        self.quantity_delta = quantity_delta
        super().__init__(
            f"Movement kind {kind} does not accept delta {quantity_delta}",
            field="quantity_delta",
        )


class InvalidTransitionError(ValidationError):
    """Requested status change is not in the document's transition table."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, document_type: str, from_status: str, to_status: str):
        self.document_type = document_type
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"{document_type} cannot move from {from_status} to {to_status}",
            field="status",
        )


class EmptyDocumentError(ValidationError):
    """A document needs at least one line."""

    code: str = "EMPTY_DOCUMENT"

    def __init__(self, document_type: str):
        self.document_type = document_type
        super().__init__(
            f"{document_type} requires at least one line", field="lines"
        )


class DocumentNotEditableError(ValidationError):
    """Edit or delete attempted outside the states that allow it."""

    code: str = "DOCUMENT_NOT_EDITABLE"

    def __init__(self, document_type: str, document_id: str, status: str):
        self.document_type = document_type
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"{document_type} {document_id} cannot be modified in status {status}",
            field="status",
        )


class DocumentHasMovementsError(ValidationError):
    """Deletion refused because stock movements reference the document."""

    code: str = "DOCUMENT_HAS_MOVEMENTS"

    def __init__(self, document_type: str, number: str, movement_count: int):
        self.document_type = document_type
        self.number = number
        self.movement_count = movement_count
        super().__init__(
            f"{document_type} {number} has {movement_count} stock movement(s) "
            "and cannot be deleted"
        )


class QuoteAlreadyConvertedError(ValidationError):
    """A quote converts to at most one invoice."""

    code: str = "QUOTE_ALREADY_CONVERTED"

    def __init__(self, quote_id: str, invoice_id: str):
        self.quote_id = quote_id
        self.invoice_id = invoice_id
        super().__init__(
            f"Quote {quote_id} was already converted to invoice {invoice_id}"
        )


class NothingCountedError(ValidationError):
    """Inventory validation with no counted line."""

    code: str = "NOTHING_COUNTED"

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(
            f"Inventory session {session_id} has no counted line"
        )


# Lookup


class NotFoundError(StockKernelError):
    """Entity does not exist in the caller's tenant."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Stock


class InsufficientStockError(StockKernelError):
    """
    Requested outbound quantity exceeds quantity-on-hand.

    ``shortfalls`` lists every offending item as
    ``(item_id, reference, available, requested)``; the first one is also
    exposed through the flat attributes.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, shortfalls: list[tuple[str, str, int, int]]):
        self.shortfalls = list(shortfalls)
        item_id, reference, available, requested = self.shortfalls[0]
        self.item_id = item_id
        self.reference = reference
        self.available = available
        self.requested = requested
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock for {reference} "
            f"(available: {available}, requested: {requested})"
        )


# Tenant


class TenantError(StockKernelError):
    """Base exception for tenant-scoping errors."""

    code: str = "TENANT_ERROR"


class CrossTenantAccessError(TenantError):
    """
    An operation reached data owned by another tenant.

    This is a programming or authorization defect, not a business outcome.
    """

    code: str = "CROSS_TENANT_ACCESS"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_tenant_id: str,
        actual_tenant_id: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_tenant_id = expected_tenant_id
        self.actual_tenant_id = actual_tenant_id
        super().__init__(
            f"{entity_type} {entity_id} belongs to tenant {actual_tenant_id}, "
            f"not {expected_tenant_id}"
        )


class InactiveTenantError(TenantError):
    """Tenant is missing or deactivated."""

    code: str = "INACTIVE_TENANT"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant {tenant_id} is not active")


# Concurrency


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class TransientStoreError(ConcurrencyError):
    """
    Lock wait timed out, deadlock, busy database or lost connection.

    The unit of work was rolled back in full; the caller may retry the
    whole logical operation.
    """

    code: str = "TRANSIENT_STORE_FAILURE"
    retryable: bool = True

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Transient store failure during {operation}: {reason}")


# Immutability


class ImmutabilityError(StockKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only or frozen record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class LedgerBypassError(ImmutabilityError):
    """Item quantity written outside the Stock Ledger."""

    code: str = "LEDGER_BYPASS"

    def __init__(self, item_id: str, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Quantity of item {item_id} changed outside the ledger: {reason}")
