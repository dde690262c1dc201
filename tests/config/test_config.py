"""
Configuration loader tests.

The packaged defaults, YAML overrides, the database URL environment
variable and the error messages for bad keys.
"""

from pathlib import Path

import pytest

from stock_config import get_active_config, reset_config_cache
from stock_config.loader import DATABASE_URL_ENV, load_config
from stock_config.schema import NumberingConfig


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "override.yaml"
    path.write_text(text)
    return path


class TestDefaults:
    def test_packaged_defaults(self):
        config = load_config(environ={})
        assert config.database.url == "sqlite:///stock.db"
        assert config.numbering.width == 4
        assert config.numbering.prefix_for("PURCHASE") == "P"
        assert config.numbering.prefix_for("CREDIT_NOTE") == "AV"
        assert config.documents.invoice_default_status == "EN_ATTENTE"
        assert config.documents.purchase_default_status == "PAYEE"
        assert config.documents.quote_validity_days == 30
        assert config.logging.level == "INFO"

    def test_config_is_frozen(self):
        config = load_config(environ={})
        with pytest.raises(AttributeError):
            config.numbering.width = 6


class TestOverrides:
    def test_override_file_merges_section_by_section(self, tmp_path):
        path = _write(
            tmp_path,
            "numbering:\n  width: 6\ndocuments:\n  quote_validity_days: 15\n",
        )
        config = load_config(path, environ={})
        assert config.numbering.width == 6
        assert config.numbering.prefix_for("INVOICE") == "F"
        assert config.documents.quote_validity_days == 15
        assert config.documents.money_places == 2

    def test_partial_prefix_override_keeps_other_prefixes(self, tmp_path):
        path = _write(tmp_path, "numbering:\n  prefixes:\n    INVOICE: FAC\n")
        config = load_config(path, environ={})
        assert config.numbering.prefix_for("INVOICE") == "FAC"
        assert config.numbering.prefix_for("QUOTE") == "D"

    def test_environment_replaces_database_url(self):
        config = load_config(environ={DATABASE_URL_ENV: "postgresql://u@h/db"})
        assert config.database.url == "postgresql://u@h/db"

    def test_logging_level_normalized(self, tmp_path):
        path = _write(tmp_path, "logging:\n  level: debug\n")
        assert load_config(path, environ={}).logging.level == "DEBUG"

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml", environ={})


class TestInvalidConfiguration:
    @pytest.mark.parametrize(
        "text, key",
        [
            ("numbering:\n  width: 0\n", "numbering.width"),
            ("numbering:\n  colour: red\n", "numbering.colour"),
            ("documents:\n  invoice_default_status: ANNULEE\n",
             "documents.invoice_default_status"),
            ("documents:\n  purchase_default_status: BROUILLON\n",
             "documents.purchase_default_status"),
            ("documents:\n  quote_validity_days: 0\n", "documents.quote_validity_days"),
            ("database:\n  pool_size: 0\n", "database.pool_size"),
            ("logging:\n  level: LOUD\n", "logging.level"),
            ("numbering:\n  prefixes:\n    RECEIPT: R\n", "numbering.prefixes.RECEIPT"),
        ],
    )
    def test_error_names_the_key(self, tmp_path, text, key):
        path = _write(tmp_path, text)
        with pytest.raises(ValueError) as exc_info:
            load_config(path, environ={})
        assert key in str(exc_info.value)

    def test_unknown_section(self, tmp_path):
        path = _write(tmp_path, "printing:\n  enabled: true\n")
        with pytest.raises(ValueError, match="printing"):
            load_config(path, environ={})

    def test_duplicate_prefixes_rejected(self):
        with pytest.raises(ValueError, match="distinct"):
            NumberingConfig(prefixes={"INVOICE": "P"})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path, environ={})


class TestActiveConfig:
    def test_cached_until_reset(self, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        first = get_active_config()
        assert get_active_config() is first
        reset_config_cache()
        assert get_active_config() is not first

    def test_cache_keyed_on_database_url(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:///one.db")
        one = get_active_config()
        monkeypatch.setenv(DATABASE_URL_ENV, "sqlite:///two.db")
        two = get_active_config()
        assert one.database.url == "sqlite:///one.db"
        assert two.database.url == "sqlite:///two.db"
