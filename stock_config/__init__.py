"""
stock_config -- single public entrypoint for configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Failure modes:
    - ``FileNotFoundError`` -- override file missing.
    - ``ValueError`` -- unknown section or key, or an invalid value; the
      message names the key.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from stock_config.loader import DATABASE_URL_ENV, load_config
from stock_config.schema import (
    DatabaseConfig,
    DocumentsConfig,
    LoggingConfig,
    NumberingConfig,
    StockConfig,
)

_logger = logging.getLogger("stock_kernel.config")

_cache: dict[tuple, StockConfig] = {}
_cache_lock = threading.Lock()


def get_active_config(config_path: Path | None = None) -> StockConfig:
    """
    Return the active configuration, loading it on first use.

    The result is cached per override path and database URL environment
    value.
    """
    key = (str(config_path) if config_path else None, os.environ.get(DATABASE_URL_ENV))
    with _cache_lock:
        config = _cache.get(key)
        if config is None:
            config = load_config(config_path)
            _cache[key] = config
            _logger.info(
                "stock_config_loaded",
                extra={
                    "config_path": key[0],
                    "database_dialect": config.database.url.split(":", 1)[0],
                },
            )
    return config


def reset_config_cache() -> None:
    """FOR TESTING ONLY."""
    with _cache_lock:
        _cache.clear()


__all__ = [
    "DatabaseConfig",
    "DocumentsConfig",
    "LoggingConfig",
    "NumberingConfig",
    "StockConfig",
    "get_active_config",
    "reset_config_cache",
]
