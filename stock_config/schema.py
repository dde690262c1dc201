"""
Configuration schema.

Frozen dataclasses parsed from YAML by the loader.  Each class validates
itself on construction and raises ValueError naming the offending key.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DOCUMENT_TYPES = ("PURCHASE", "INVOICE", "QUOTE", "CREDIT_NOTE", "INVENTORY")

INVOICE_ISSUED_STATUSES = ("EN_ATTENTE", "PAYEE", "PARTIELLEMENT_PAYEE")
INVOICE_CREATION_STATUSES = ("BROUILLON",) + INVOICE_ISSUED_STATUSES
PURCHASE_CREATION_STATUSES = ("EN_ATTENTE", "PAYEE")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///stock.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    lock_timeout_ms: int = 5000
    sqlite_busy_timeout_s: float = 30.0

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database.url is required")
        for key in ("pool_size", "pool_timeout", "lock_timeout_ms"):
            if getattr(self, key) <= 0:
                raise ValueError(f"database.{key} must be positive")
        if self.max_overflow < 0:
            raise ValueError("database.max_overflow cannot be negative")
        if self.sqlite_busy_timeout_s <= 0:
            raise ValueError("database.sqlite_busy_timeout_s must be positive")


_DEFAULT_PREFIXES = {
    "PURCHASE": "P",
    "INVOICE": "F",
    "QUOTE": "D",
    "CREDIT_NOTE": "AV",
    "INVENTORY": "INV",
}


@dataclass(frozen=True)
class NumberingConfig:
    """Document number rendering: ``{prefix}-{value:0{width}d}``."""

    prefixes: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_PREFIXES))
    )
    width: int = 4

    def __post_init__(self) -> None:
        merged = dict(_DEFAULT_PREFIXES)
        for key, prefix in dict(self.prefixes).items():
            if key not in DOCUMENT_TYPES:
                raise ValueError(f"numbering.prefixes.{key} is not a document type")
            if not prefix or not str(prefix).strip():
                raise ValueError(f"numbering.prefixes.{key} cannot be empty")
            merged[key] = str(prefix).strip()
        if len(set(merged.values())) != len(merged):
            raise ValueError("numbering.prefixes must be distinct")
        object.__setattr__(self, "prefixes", MappingProxyType(merged))
        if not 1 <= self.width <= 12:
            raise ValueError("numbering.width must be between 1 and 12")

    def prefix_for(self, document_type: str) -> str:
        return self.prefixes[document_type]


@dataclass(frozen=True)
class DocumentsConfig:
    invoice_default_status: str = "EN_ATTENTE"
    purchase_default_status: str = "PAYEE"
    quote_validity_days: int = 30
    money_places: int = 2

    def __post_init__(self) -> None:
        if self.invoice_default_status not in INVOICE_CREATION_STATUSES:
            raise ValueError(
                "documents.invoice_default_status must be one of "
                + ", ".join(INVOICE_CREATION_STATUSES)
            )
        if self.purchase_default_status not in PURCHASE_CREATION_STATUSES:
            raise ValueError(
                "documents.purchase_default_status must be one of "
                + ", ".join(PURCHASE_CREATION_STATUSES)
            )
        if self.quote_validity_days <= 0:
            raise ValueError("documents.quote_validity_days must be positive")
        if not 0 <= self.money_places <= 6:
            raise ValueError("documents.money_places must be between 0 and 6")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        level = str(self.level).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(_LOG_LEVELS)}")
        object.__setattr__(self, "level", level)


@dataclass(frozen=True)
class StockConfig:
    """Root configuration object returned by ``get_active_config()``."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    numbering: NumberingConfig = field(default_factory=NumberingConfig)
    documents: DocumentsConfig = field(default_factory=DocumentsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
