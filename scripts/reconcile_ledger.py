#!/usr/bin/env python3
"""
Replay the stock ledger for every inventory key and report divergences.

Each key whose replayed quantity differs from the live inventory record is
frozen with a reconciliation hold; the hold stays until an operator fixes
the data and releases it with --release.

Usage:
  python3 scripts/reconcile_ledger.py [--config PATH] [--db-url URL]
  python3 scripts/reconcile_ledger.py --release HOLD_ID --note "fixed by hand"

Exit status is 0 when the ledger is clean, 2 when holds were placed.
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

# Actor recorded on holds placed by this script.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Reconcile inventory records against the stock ledger")
    p.add_argument("--config", default=None, help="YAML config file (default: ERP_CONFIG_FILE or bundled defaults)")
    p.add_argument("--db-url", default=None, help="Database URL (overrides the config file)")
    p.add_argument("--actor-id", type=UUID, default=SYSTEM_ACTOR_ID, help="Actor recorded on holds")
    p.add_argument("--release", type=UUID, default=None, metavar="HOLD_ID", help="Release a hold instead of reconciling")
    p.add_argument("--note", default=None, help="Resolution note (required with --release)")
    return p.parse_args()


def main() -> int:
    args = _parse_args()
    if args.release is not None and not args.note:
        print("ERROR: --release needs --note", file=sys.stderr)
        return 1

    from erp_config import get_active_config
    from erp_kernel.db.engine import get_session, init_engine_from_url
    from erp_kernel.logging_config import configure_logging
    from erp_services.reconciliation_service import ReconciliationService

    config = get_active_config(args.config)
    configure_logging(level=config.log_level)
    db = config.database
    init_engine_from_url(
        args.db_url or db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )

    session = get_session()
    try:
        service = ReconciliationService(session)
        if args.release is not None:
            hold = service.release_hold(args.release, args.actor_id, args.note)
            print(f"Released hold {hold.id} on {hold.warehouse_id}/{hold.product_id}")
            return 0

        report = service.reconcile_all(args.actor_id)
        print(f"Checked {report.checked} inventory keys")
        if report.is_clean:
            print("Ledger is consistent.")
            return 0

        print(f"{len(report.discrepancies)} key(s) diverge and are now on hold:")
        for d in report.discrepancies:
            print(
                f"  warehouse={d.warehouse_id} product={d.product_id} "
                f"live={d.live_quantity} replayed={d.replayed_quantity} hold={d.hold_id}"
            )
        return 2
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
