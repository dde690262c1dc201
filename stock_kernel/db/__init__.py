"""Database layer - engine, base classes and integrity listeners."""

from stock_kernel.db.base import UUID, Base, TenantScoped, TrackedBase, UUIDString
from stock_kernel.db.engine import (
    begin_write,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
)

__all__ = [
    "begin_write",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "TenantScoped",
    "UUIDString",
    "UUID",
]
