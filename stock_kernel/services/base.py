"""
BaseService -- abstract base for kernel services that flush but never commit.

Responsibility:
    Provides the common constructor and session-handling contract for the
    building-block services (Sequence Allocator, Stock Ledger).  They use
    ``session.flush()`` -- never ``session.commit()`` -- so a document
    operation can compose several of them inside one transaction.

Invariants enforced:
    Transaction boundaries: the caller (a document service's unit of work
    or a test harness) owns commit/rollback.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for flush-only kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session
