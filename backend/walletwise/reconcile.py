"""Recompute stored wallet balances from transactions.

    python -m walletwise.reconcile            # every user
    python -m walletwise.reconcile --user-id 7
    python -m walletwise.reconcile --dry-run
    python -m walletwise.reconcile --grace-seconds 0
"""

import argparse
import logging
import sys

from walletwise.core.errors import LedgerError
from walletwise.db.session import SessionLocal
from walletwise.services.reconciliation import reconcile_all, reconcile_user, record_drifts
from walletwise.services.stores import TransactionStore, UserStore


def main(argv=None) -> int:
    p = argparse.ArgumentParser(prog="walletwise.reconcile", description=__doc__.splitlines()[0])
    p.add_argument("--user-id", type=int, default=None)
    p.add_argument("--dry-run", action="store_true", help="report drift without writing")
    p.add_argument(
        "--grace-seconds",
        type=int,
        default=None,
        help="treat ledger writes in flight for longer than this as abandoned",
    )
    args = p.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    db = SessionLocal()
    try:
        users, txs = UserStore(db), TransactionStore(db)
        if args.user_id is not None:
            d = reconcile_user(users, txs, args.user_id, dry_run=args.dry_run, grace_seconds=args.grace_seconds)
            drifts = [d] if d is not None else []
        else:
            drifts = reconcile_all(users, txs, dry_run=args.dry_run, grace_seconds=args.grace_seconds)
        if not args.dry_run:
            record_drifts(db, "cli", drifts)
    except LedgerError as e:
        print(f"reconcile failed: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    for d in drifts:
        print(f"user {d.user_id}: {d.old} -> {d.new}")
    print(f"{len(drifts)} balance(s) {'would change' if args.dry_run else 'corrected'}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
