#!/usr/bin/env python3
"""
Verify (and optionally repair) stock projections against the movement ledger.

For every product of a store (or one product), walks its movements in seq
order, reports chain breaks, and compares Product.stock with the stock the
ledger implies.  With --repair, mismatched projections are rewritten from
the ledger; movements are never touched.

Uses the database from inventory_config (INVENTORY_DATABASE_URL overrides).

Usage:
    python3 scripts/reconcile_stock.py --store STORE_ID
    python3 scripts/reconcile_stock.py --product PRODUCT_ID --repair

Exit status: 0 when everything is consistent (or was repaired), 1 otherwise.
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Verify and repair stock projections")
    target = p.add_mutually_exclusive_group(required=True)
    target.add_argument("--store", type=UUID, help="Check every product of this store")
    target.add_argument("--product", type=UUID, help="Check a single product")
    p.add_argument("--repair", action="store_true", help="Rewrite mismatched Product.stock")
    p.add_argument("--config", default=None, help="Optional YAML config file")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    from inventory_config import get_active_config
    from inventory_kernel.db.engine import init_engine_from_url, session_scope
    from inventory_kernel.domain.actor import SYSTEM
    from inventory_kernel.logging_config import configure_logging
    from inventory_kernel.services.reconciliation_service import StockReconciliationService
    from inventory_modules._orm_registry import import_all_orm_models, register_all_listeners

    config = get_active_config(args.config)
    configure_logging(level=config.log_level)
    init_engine_from_url(config.database_url)
    import_all_orm_models()
    register_all_listeners()

    with session_scope() as session:
        service = StockReconciliationService(session)
        if args.store:
            reports = service.verify_store(args.store)
        else:
            reports = [service.verify(args.product)]

    inconsistent = [r for r in reports if not r.consistent]
    print(f"Checked {len(reports)} product(s); {len(inconsistent)} inconsistent")
    for r in inconsistent:
        print(
            f"  {r.product_id}: stock={r.product_stock} ledger={r.ledger_stock} "
            f"breaks={len(r.breaks)}"
        )
        for b in r.breaks:
            print(f"    seq {b.seq} {b.kind}: expected {b.expected}, found {b.actual}")

    if not inconsistent:
        return 0
    if not args.repair:
        return 1

    unrepairable = 0
    for r in inconsistent:
        if not r.chain_ok:
            unrepairable += 1
            continue
        with session_scope() as session:
            repair = StockReconciliationService(session).repair(r.product_id, SYSTEM)
        if repair is not None:
            print(f"  repaired {repair.product_id}: {repair.previous_stock} -> {repair.repaired_stock}")
    if unrepairable:
        print(f"{unrepairable} product(s) have broken chains and need manual review")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
