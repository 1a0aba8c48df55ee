"""
Module: inventory_kernel.db.triggers
Responsibility: Loading, installing, and verifying PostgreSQL immutability
    triggers.  This is the database-level complement to the ORM-level
    listeners in db/immutability.py and inventory_modules.restock.immutability.
Architecture position: Kernel > DB.  May import from db/ only (pathlib for
    SQL file loading, sqlalchemy for execution).  MUST NOT import from
    models/, services/, selectors/, domain/, or outer layers.

Invariants enforced (via 4 PostgreSQL triggers across 2 SQL files):
    - InventoryMovement rows: no UPDATE, no DELETE.
    - RestockOrderItem rows: product/quantity/cost frozen once the order
      leaves DRAFT; quantity_received never decreases; no DELETE outside DRAFT.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any trigger violation (surfaced by
      SQLAlchemy as IntegrityError or InternalError).
    - FileNotFoundError if SQL files are missing from the sql/ directory.

Audit relevance:
    Even if the ORM layer is bypassed (raw SQL, bulk operations, direct psql
    access), the ledger cannot be rewritten.
"""

from pathlib import Path

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from inventory_kernel.logging_config import get_logger

logger = get_logger("db.triggers")


# =============================================================================
# SQL File Loading
# =============================================================================

SQL_DIR = Path(__file__).parent / "sql"

# Trigger files in installation order, with the table each one guards.
TRIGGER_FILES: dict[str, str] = {
    "01_inventory_movement.sql": "inventory_movements",
    "02_restock_order_item.sql": "restock_order_items",
}

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_inventory_movement_immutability_update",
    "trg_inventory_movement_immutability_delete",
    "trg_restock_order_item_frozen_update",
    "trg_restock_order_item_frozen_delete",
]


def _load_sql_file(filename: str) -> str:
    """
    Load SQL content from a file in the sql/ directory.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    filepath = SQL_DIR / filename
    return filepath.read_text(encoding="utf-8")


# =============================================================================
# Public API
# =============================================================================


def install_immutability_triggers(engine: Engine) -> list[str]:
    """
    Install database-level immutability triggers.

    Files whose guarded table does not exist yet are skipped, so the kernel
    can be installed without the restock module.

    Preconditions: Tables must exist (call after create_all()).
        Engine must be connected to PostgreSQL.

    Returns:
        The SQL files that were applied.
    """
    existing = set(inspect(engine).get_table_names())
    applied: list[str] = []

    with engine.connect() as conn:
        for filename, table in TRIGGER_FILES.items():
            if table not in existing:
                logger.debug(
                    "trigger_file_skipped",
                    extra={"file": filename, "table": table},
                )
                continue
            conn.execute(text(_load_sql_file(filename)))
            applied.append(filename)
        conn.commit()

    logger.info("immutability_triggers_installed", extra={"files": applied})
    return applied


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove database-level immutability triggers.

    WARNING: Only for tests and supervised data repairs.  Re-install the
    triggers immediately afterwards.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """Get list of installed immutability triggers."""
    trigger_list = ", ".join(f"'{name}'" for name in ALL_TRIGGER_NAMES)
    check_sql = f"""
    SELECT tgname FROM pg_trigger
    WHERE tgname IN ({trigger_list})
    ORDER BY tgname;
    """

    with engine.connect() as conn:
        result = conn.execute(text(check_sql))
        return [row[0] for row in result]


def triggers_installed(engine: Engine) -> bool:
    """Check if all immutability triggers are installed."""
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
