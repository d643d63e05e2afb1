from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy.orm import Session

from walletwise.core.config import settings
from walletwise.db.session import SessionLocal
from walletwise.models.transaction import Transaction
from walletwise.services.audit import log_event
from walletwise.services.balance_ledger import signed_effect
from walletwise.services.stores import BalanceState, TransactionStore, UserStore
from walletwise.utils.timezone import utcnow_naive

logger = logging.getLogger(__name__)


@dataclass
class BalanceDrift:
    user_id: int
    old: Decimal
    new: Decimal

    def as_dict(self) -> dict:
        return {"user_id": self.user_id, "old": str(self.old), "new": str(self.new)}


def compute_balance(txs: Iterable[Transaction]) -> Decimal:
    return sum((signed_effect(t.kind, t.amount) for t in txs), Decimal("0"))


def _settled(state: BalanceState, grace_seconds: int) -> bool:
    if state.inflight <= 0 or state.touched_at is None:
        return True
    # marks that outlive the grace period belong to writes that failed half-way
    return (utcnow_naive() - state.touched_at).total_seconds() >= grace_seconds


def reconcile_user(
    users: UserStore,
    transactions: TransactionStore,
    user_id: int,
    dry_run: bool = False,
    grace_seconds: int | None = None,
) -> BalanceDrift | None:
    """Recompute one user's balance from their transactions.

    Returns the drift that was (or, with ``dry_run``, would be) corrected, or
    ``None`` when the stored balance already matches. Users with a ledger
    write in flight are left alone until it settles or its mark expires. The
    overwrite only lands if the stored balance is still the value that was
    compared and no ledger write started in between.
    """
    if grace_seconds is None:
        grace_seconds = settings.reconcile_grace_seconds

    state = users.get_state(user_id)
    if not _settled(state, grace_seconds):
        logger.info("reconcile skipped user_id=%s, %d ledger write(s) in flight", user_id, state.inflight)
        return None

    computed = compute_balance(transactions.find_all_by_user(user_id))
    if state.balance == computed:
        return None

    drift = BalanceDrift(user_id=user_id, old=state.balance, new=computed)
    if dry_run:
        return drift

    if not users.set_balance(user_id, computed, expected=state.balance, seq=state.seq):
        # a ledger write landed in between; the next pass re-checks
        logger.info("reconcile skipped user_id=%s, balance moved during check", user_id)
        return None

    logger.warning("balance drift corrected user_id=%s old=%s new=%s", user_id, state.balance, computed)
    return drift


def reconcile_all(
    users: UserStore,
    transactions: TransactionStore,
    dry_run: bool = False,
    grace_seconds: int | None = None,
) -> list[BalanceDrift]:
    out: list[BalanceDrift] = []
    for user_id in users.all_user_ids():
        drift = reconcile_user(users, transactions, user_id, dry_run=dry_run, grace_seconds=grace_seconds)
        if drift is not None:
            out.append(drift)
    return out


def record_drifts(s: Session, actor: str, drifts: list[BalanceDrift]) -> None:
    for d in drifts:
        log_event(
            s,
            actor=actor,
            action="balance.reconcile",
            entity_type="user",
            entity_id=d.user_id,
            details=d.as_dict(),
        )


def reconcile_once() -> list[BalanceDrift]:
    with SessionLocal() as s:
        drifts = reconcile_all(UserStore(s), TransactionStore(s))
        record_drifts(s, "system", drifts)
    if drifts:
        logger.warning("reconciliation corrected %d balance(s)", len(drifts))
    return drifts


async def reconciliation_loop() -> None:
    if not getattr(settings, "reconcile_enabled", True):
        return

    interval = int(getattr(settings, "reconcile_interval_seconds", 3600) or 3600)
    await asyncio.sleep(3)

    while True:
        try:
            await asyncio.to_thread(reconcile_once)
        except Exception as e:
            logging.exception("reconciliation failed", exc_info=e)
        await asyncio.sleep(interval)
