from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import case, select, update, delete
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from walletwise.core.errors import CommitUnconfirmedError, NotFoundError, StoreUnavailableError
from walletwise.models.transaction import Transaction
from walletwise.models.user import User
from walletwise.utils.timezone import utcnow_naive

HALF_CENT = Decimal("0.005")


@contextmanager
def _store_call(s: Session, what: str):
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        s.rollback()
        raise StoreUnavailableError(f"{what} failed: {e.orig or e}") from e


def _commit(s: Session, what: str, entity_id: int | None = None) -> None:
    # a lost acknowledgement does not mean the write was rolled back
    try:
        s.commit()
    except (OperationalError, InterfaceError) as e:
        s.rollback()
        raise CommitUnconfirmedError(f"{what} not confirmed: {e.orig or e}", entity_id=entity_id) from e


class TransactionStore:
    """Transaction rows, always addressed by (user_id, id).

    Writes are compare-and-set on ``version`` so a racing update/delete on the
    same row can only succeed once. Every row handed back by a write is loaded
    before the COMMIT and detached, so nothing is read after it.
    """

    def __init__(self, s: Session):
        self.s = s

    def insert(self, record: Transaction) -> Transaction:
        with _store_call(self.s, "transaction insert"):
            self.s.add(record)
            self.s.flush()
            self.s.refresh(record)
            self.s.expunge(record)
        _commit(self.s, "transaction insert", record.id)
        return record

    def find_by_id(self, user_id: int, tx_id: int) -> Transaction | None:
        with _store_call(self.s, "transaction lookup"):
            return self.s.execute(
                select(Transaction)
                .where(Transaction.id == tx_id, Transaction.user_id == user_id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()

    def find_all_by_user(self, user_id: int) -> list[Transaction]:
        with _store_call(self.s, "transaction scan"):
            return list(
                self.s.execute(select(Transaction).where(Transaction.user_id == user_id)).scalars().all()
            )

    def update(self, user_id: int, tx_id: int, fields: dict, expected_version: int) -> Transaction | None:
        with _store_call(self.s, "transaction update"):
            res = self.s.execute(
                update(Transaction)
                .where(
                    Transaction.id == tx_id,
                    Transaction.user_id == user_id,
                    Transaction.version == expected_version,
                )
                .values(**fields, version=Transaction.version + 1)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                self.s.commit()
                return None
            # the UPDATE holds the row until commit, so this sees our own write
            row = self.s.execute(
                select(Transaction)
                .where(Transaction.id == tx_id, Transaction.user_id == user_id)
                .execution_options(populate_existing=True)
            ).scalar_one()
            self.s.expunge(row)
        _commit(self.s, "transaction update", tx_id)
        return row

    def delete(self, user_id: int, tx_id: int, expected_version: int) -> Transaction | None:
        with _store_call(self.s, "transaction delete"):
            row = self.s.execute(
                select(Transaction).where(Transaction.id == tx_id, Transaction.user_id == user_id)
            ).scalar_one_or_none()
            if row is None or row.version != expected_version:
                return None
            # keep the loaded values around after the row is gone
            self.s.expunge(row)
            res = self.s.execute(
                delete(Transaction)
                .where(
                    Transaction.id == tx_id,
                    Transaction.user_id == user_id,
                    Transaction.version == expected_version,
                )
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                self.s.commit()
                return None
        _commit(self.s, "transaction delete", tx_id)
        return row


@dataclass
class BalanceState:
    balance: Decimal
    seq: int
    inflight: int
    touched_at: datetime | None


def _settle_one():
    return case((User.ledger_inflight > 0, User.ledger_inflight - 1), else_=0)


class UserStore:
    """Per-user wallet balance.

    The balance is never read-modified-written here: increments are a single
    ``SET wallet_balance = wallet_balance + :delta`` statement, so concurrent
    deltas compound in the database.

    ``begin_mutation`` marks a ledger write as in flight before its row is
    written; the increment clears the mark in the same statement that moves
    the balance. Reconciliation uses the marks to stay away from users whose
    rows and balance are momentarily apart.
    """

    def __init__(self, s: Session):
        self.s = s

    def begin_mutation(self, user_id: int) -> None:
        with _store_call(self.s, "balance mark"):
            res = self.s.execute(
                update(User)
                .where(User.id == user_id)
                .values(
                    ledger_seq=User.ledger_seq + 1,
                    ledger_inflight=User.ledger_inflight + 1,
                    ledger_touched_at=utcnow_naive(),
                )
                .execution_options(synchronize_session=False)
            )
            self.s.commit()
        if res.rowcount == 0:
            raise NotFoundError(f"user {user_id} not found", code="user_not_found")

    def end_mutation(self, user_id: int) -> None:
        """Clear one in-flight mark for a write that never reached the database."""
        with _store_call(self.s, "balance unmark"):
            self.s.execute(
                update(User)
                .where(User.id == user_id)
                .values(ledger_inflight=_settle_one())
                .execution_options(synchronize_session=False)
            )
            self.s.commit()

    def increment_balance(self, user_id: int, delta: Decimal) -> None:
        with _store_call(self.s, "balance increment"):
            res = self.s.execute(
                update(User)
                .where(User.id == user_id)
                .values(wallet_balance=User.wallet_balance + delta, ledger_inflight=_settle_one())
                .execution_options(synchronize_session=False)
            )
            self.s.commit()
        if res.rowcount == 0:
            raise NotFoundError(f"user {user_id} not found", code="user_not_found")

    def set_balance(
        self,
        user_id: int,
        value: Decimal,
        expected: Decimal | None = None,
        seq: int | None = None,
    ) -> bool:
        """Overwrite the balance.

        With ``expected`` only if it still holds that value; with ``seq`` only if
        no ledger write has started since that sequence number was read, in
        which case leftover in-flight marks are cleared as well.
        """
        q = update(User).where(User.id == user_id)
        values: dict = {"wallet_balance": value}
        if expected is not None:
            # half a cent either way; sqlite keeps numerics as floats
            q = q.where(User.wallet_balance.between(expected - HALF_CENT, expected + HALF_CENT))
        if seq is not None:
            q = q.where(User.ledger_seq == seq)
            values["ledger_inflight"] = 0
        with _store_call(self.s, "balance overwrite"):
            res = self.s.execute(q.values(**values).execution_options(synchronize_session=False))
            self.s.commit()
        return res.rowcount > 0

    def get_balance(self, user_id: int) -> Decimal:
        with _store_call(self.s, "balance read"):
            v = self.s.execute(select(User.wallet_balance).where(User.id == user_id)).scalar_one_or_none()
        if v is None:
            raise NotFoundError(f"user {user_id} not found", code="user_not_found")
        return Decimal(str(v))

    def get_state(self, user_id: int) -> BalanceState:
        with _store_call(self.s, "balance read"):
            row = self.s.execute(
                select(
                    User.wallet_balance,
                    User.ledger_seq,
                    User.ledger_inflight,
                    User.ledger_touched_at,
                ).where(User.id == user_id)
            ).one_or_none()
        if row is None:
            raise NotFoundError(f"user {user_id} not found", code="user_not_found")
        return BalanceState(
            balance=Decimal(str(row.wallet_balance)),
            seq=row.ledger_seq or 0,
            inflight=row.ledger_inflight or 0,
            touched_at=row.ledger_touched_at,
        )

    def all_user_ids(self) -> list[int]:
        with _store_call(self.s, "user scan"):
            return list(self.s.execute(select(User.id).order_by(User.id.asc())).scalars().all())
