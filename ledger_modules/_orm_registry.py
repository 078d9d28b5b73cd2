"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure kernel models and every module ORM model are imported so that
``Base.metadata`` contains their table definitions before
``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``ledger_kernel.db.engine.create_tables`` / ``drop_tables`` and by tests.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Kernel tables first: module tables carry foreign keys to accounts,
    journal entries and liquid accounts.  Idempotent.
    """
    # fmt: off
    import ledger_kernel.models  # noqa: F401
    import ledger_kernel.services.sequence_service  # noqa: F401  # sequence_counters
    import ledger_modules.inventory.orm  # noqa: F401
    import ledger_modules.ap.orm  # noqa: F401
    import ledger_modules.sales.orm  # noqa: F401
    import ledger_modules.ar.orm  # noqa: F401
    # fmt: on


def create_all_tables() -> None:
    """Create kernel + module tables.  Engine must already be initialized."""
    from ledger_kernel.db.engine import create_tables

    create_tables()
