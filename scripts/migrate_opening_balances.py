#!/usr/bin/env python3
"""
Give legacy products an opening-balance movement.

Products whose stock was set before the ledger existed have stock but no
movements.  For each such product this writes one INITIAL_MIGRATION
movement (previous_stock=0, new_stock=stock, cost=acquisition price) as
the migration-script actor.  Products that already have movements, or have
zero stock, are skipped, so the script can be re-run safely.

Each product is migrated in its own transaction; a failure is reported and
the run continues.

Usage:
    python3 scripts/migrate_opening_balances.py --store STORE_ID
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Write opening-balance movements for legacy stock")
    p.add_argument("--store", type=UUID, required=True, help="Store to migrate")
    p.add_argument("--config", default=None, help="Optional YAML config file")
    return p.parse_args(argv)


def migrate_store(store_id: UUID) -> dict:
    """Migrate every product of a store.  Returns processed/migrated/errors."""
    from sqlalchemy import select

    from inventory_kernel.db.engine import session_scope
    from inventory_kernel.domain.actor import MIGRATION_SCRIPT
    from inventory_kernel.exceptions import InventoryKernelError
    from inventory_kernel.models.product import Product
    from inventory_kernel.services.stock_ledger import StockLedger

    with session_scope() as session:
        product_ids = list(
            session.execute(
                select(Product.id).where(Product.store_id == store_id).order_by(Product.id)
            ).scalars()
        )

    migrated = 0
    errors: list[dict] = []
    for product_id in product_ids:
        try:
            with session_scope() as session:
                movement = StockLedger(session).record_opening_balance(
                    product_id, MIGRATION_SCRIPT, store_id=store_id
                )
        except InventoryKernelError as exc:
            errors.append({"product_id": str(product_id), "error": exc.code, "message": str(exc)})
            continue
        if movement is not None:
            migrated += 1

    return {"processed": len(product_ids), "migrated": migrated, "errors": errors}


def main(argv=None) -> int:
    args = _parse_args(argv)

    from inventory_config import get_active_config
    from inventory_kernel.db.engine import init_engine_from_url
    from inventory_kernel.logging_config import configure_logging
    from inventory_modules._orm_registry import import_all_orm_models, register_all_listeners

    config = get_active_config(args.config)
    configure_logging(level=config.log_level)
    init_engine_from_url(config.database_url)
    import_all_orm_models()
    register_all_listeners()

    summary = migrate_store(args.store)
    print(
        f"Processed {summary['processed']} product(s): "
        f"{summary['migrated']} migrated, {len(summary['errors'])} error(s)"
    )
    for err in summary["errors"]:
        print(f"  {err['product_id']}: {err['error']} {err['message']}")
    return 1 if summary["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())
