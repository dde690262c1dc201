"""
YAML loader for ``StockConfig``.

The packaged ``defaults.yaml`` is read first; an optional override file is
merged over it section by section; ``STOCK_DATABASE_URL`` finally replaces
``database.url``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    DatabaseConfig,
    DocumentsConfig,
    LoggingConfig,
    NumberingConfig,
    StockConfig,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
DATABASE_URL_ENV = "STOCK_DATABASE_URL"

_SECTIONS = {
    "database": DatabaseConfig,
    "numbering": NumberingConfig,
    "documents": DocumentsConfig,
    "logging": LoggingConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = {key: dict(value or {}) for key, value in base.items()}
    for key, value in override.items():
        if key not in _SECTIONS:
            raise ValueError(f"unknown configuration section: {key}")
        if value is None:
            continue
        if not isinstance(value, dict):
            raise ValueError(f"{key} must be a mapping")
        merged.setdefault(key, {}).update(value)
    return merged


def parse_config(data: dict[str, Any]) -> StockConfig:
    kwargs = {}
    for section, cls in _SECTIONS.items():
        values = data.get(section) or {}
        known = set(cls.__dataclass_fields__)
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"{section}.{sorted(unknown)[0]} is not a known key")
        try:
            kwargs[section] = cls(**values)
        except TypeError as exc:
            raise ValueError(f"{section}: {exc}") from exc
    return StockConfig(**kwargs)


def load_config(
    config_path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> StockConfig:
    environ = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)
    if config_path is not None:
        data = merge_sections(data, load_yaml_file(Path(config_path)))
    url = environ.get(DATABASE_URL_ENV)
    if url:
        data.setdefault("database", {})["url"] = url
    return parse_config(data)
