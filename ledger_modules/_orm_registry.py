"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before
``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  Imported lazily by
``ledger_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``ledger_modules.*.orm`` module.

    Kernel tables (entities, parties, gl_accounts) must be registered first;
    module tables reference them by foreign key.  Idempotent.
    """
    import ledger_kernel.models  # noqa: F401
    import ledger_modules.invoicing.orm  # noqa: F401
    import ledger_modules.payments.orm  # noqa: F401
