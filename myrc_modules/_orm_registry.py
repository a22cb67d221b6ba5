"""
Module ORM Registry (``myrc_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` holds their tables before ``create_tables()`` runs.

Architecture position
---------------------
**Modules layer** -- utility.  ``myrc_kernel.db.engine.create_tables``
imports this lazily; nothing else in the kernel may.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``myrc_modules.*.orm`` module.

    Kernel tables (fiscal years, monies, categories) come first since every
    module table references them.  Idempotent.
    """
    import myrc_kernel.models  # noqa: F401
    # fmt: off
    import myrc_modules.funding.orm  # noqa: F401
    import myrc_modules.procurement.orm  # noqa: F401
    import myrc_modules.spending.orm  # noqa: F401
    import myrc_modules.training.orm  # noqa: F401
    import myrc_modules.travel.orm  # noqa: F401
    # fmt: on
