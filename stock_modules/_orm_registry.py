"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` holds its table before tables are created, and so that
``register_integrity_listeners()`` finds every document table.

Architecture position
---------------------
**Modules layer** -- utility.  Imports the sibling ``stock_modules``
packages and the kernel models (allowed: modules -> kernel).

Usage
-----
``create_tables()``, ``scripts/init_db.py`` and ``tests/conftest.py`` all
go through ``import_all_orm_models()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``stock_modules.*.orm`` module.

    Kernel tables come first: document lines reference ``items`` and every
    header references ``tenants``.

    This function is idempotent -- repeated calls are harmless.
    """
    from stock_kernel.models import import_kernel_models

    import_kernel_models()
    # fmt: off
    import stock_modules.purchasing.orm  # noqa: F401
    import stock_modules.invoicing.orm  # noqa: F401
    import stock_modules.quotes.orm  # noqa: F401
    import stock_modules.credit_notes.orm  # noqa: F401
    import stock_modules.inventory_count.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Import every ORM model, then create every table."""
    from stock_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables()
