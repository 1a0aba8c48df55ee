"""
Module ORM Registry (``inventory_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model (kernel and modules) is imported so that
``Base.metadata`` holds all table definitions before tables are created,
and that the ORM guards of every module are registered.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``inventory_modules``
packages and from ``inventory_kernel.db`` (allowed: modules -> kernel).
MUST NOT be imported by ``inventory_kernel``.

Usage
-----
Scripts, the service facade and ``tests/conftest.py`` all call
``create_all_tables()`` and ``register_all_listeners()``.
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``inventory_modules.*.orm`` module.

    Kernel models first: restock tables reference ``products.id``.
    Idempotent.
    """
    import inventory_kernel.models  # noqa: F401
    import inventory_modules.restock.orm  # noqa: F401


def register_all_listeners() -> None:
    """Register kernel and module immutability listeners.  Idempotent."""
    from inventory_kernel.db.immutability import register_immutability_listeners
    from inventory_modules.restock.immutability import register_restock_listeners

    import_all_orm_models()
    register_immutability_listeners()
    register_restock_listeners()


def create_all_tables(install_triggers: bool = True) -> None:
    """Create kernel + module tables, then optionally install triggers.

    Preconditions:
        Engine must be initialized via ``init_engine_from_url()``.
    Postconditions:
        All tables exist.  On PostgreSQL with *install_triggers*, the
        immutability triggers are installed.
    """
    from inventory_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(install_triggers=install_triggers)
