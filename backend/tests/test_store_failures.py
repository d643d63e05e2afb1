from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from walletwise.core.errors import PartialApplicationError, StoreUnavailableError
from walletwise.db.base import Base
from walletwise.models.user import User
from walletwise.services.balance_ledger import BalanceLedger
from walletwise.services.reconciliation import compute_balance, reconcile_user
from walletwise.services.stores import TransactionStore, UserStore


@pytest.fixture()
def Session(tmp_path):
    eng = create_engine(f"sqlite+pysqlite:///{tmp_path / 'failures.db'}", future=True)
    Base.metadata.create_all(eng)
    try:
        yield sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)
    finally:
        eng.dispose()


def _mk_user(Session) -> int:
    with Session() as s:
        u = User(email="failures@example.com", password_hash="x", role="user")
        s.add(u)
        s.commit()
        return u.id


def _connection_lost():
    return OperationalError("COMMIT", {}, Exception("server closed the connection unexpectedly"))


def _ack_lost_on(monkeypatch, s, nth: int) -> None:
    """The nth commit from now reaches the database but its reply never comes back."""
    real_commit = s.commit
    calls = {"n": 0}

    def commit():
        calls["n"] += 1
        real_commit()
        if calls["n"] == nth:
            raise _connection_lost()

    monkeypatch.setattr(s, "commit", commit)


def _check(Session, user_id: int):
    with Session() as s:
        return UserStore(s).get_state(user_id), TransactionStore(s).find_all_by_user(user_id)


def test_failure_before_commit_is_retryable_and_writes_nothing(Session, monkeypatch):
    user_id = _mk_user(Session)

    with Session() as s:
        def refresh(*a, **kw):
            raise _connection_lost()

        monkeypatch.setattr(s, "refresh", refresh)
        with pytest.raises(StoreUnavailableError):
            BalanceLedger(TransactionStore(s), UserStore(s)).create(user_id, "income", Decimal("50"))

    state, rows = _check(Session, user_id)
    assert rows == []
    assert state.balance == Decimal("0")
    assert state.inflight == 0


def test_lost_insert_ack_is_partial_application(Session, monkeypatch):
    user_id = _mk_user(Session)

    with Session() as s:
        ledger = BalanceLedger(TransactionStore(s), UserStore(s))
        # first commit marks the user, second one is the insert
        _ack_lost_on(monkeypatch, s, 2)
        with pytest.raises(PartialApplicationError) as exc:
            ledger.create(user_id, "income", Decimal("50"))

    assert exc.value.delta == Decimal("50")
    state, rows = _check(Session, user_id)
    assert [r.id for r in rows] == [exc.value.transaction_id]
    assert state.balance == Decimal("0")
    assert state.inflight == 1

    with Session() as s:
        drift = reconcile_user(UserStore(s), TransactionStore(s), user_id, grace_seconds=0)
    assert drift.new == Decimal("50")


def test_lost_update_ack_is_partial_application(Session, monkeypatch):
    user_id = _mk_user(Session)
    with Session() as s:
        tx_id = BalanceLedger(TransactionStore(s), UserStore(s)).create(user_id, "expense", Decimal("20")).id

    with Session() as s:
        ledger = BalanceLedger(TransactionStore(s), UserStore(s))
        _ack_lost_on(monkeypatch, s, 2)
        with pytest.raises(PartialApplicationError) as exc:
            ledger.update(user_id, tx_id, amount=Decimal("75"))

    assert exc.value.transaction_id == tx_id
    assert exc.value.delta == Decimal("-55")
    state, rows = _check(Session, user_id)
    assert rows[0].version == 2
    assert state.balance == Decimal("-20")

    with Session() as s:
        reconcile_user(UserStore(s), TransactionStore(s), user_id, grace_seconds=0)
    state, rows = _check(Session, user_id)
    assert state.balance == compute_balance(rows) == Decimal("-75")


def test_lost_delete_ack_is_partial_application(Session, monkeypatch):
    user_id = _mk_user(Session)
    with Session() as s:
        tx_id = BalanceLedger(TransactionStore(s), UserStore(s)).create(user_id, "income", Decimal("30")).id

    with Session() as s:
        ledger = BalanceLedger(TransactionStore(s), UserStore(s))
        _ack_lost_on(monkeypatch, s, 2)
        with pytest.raises(PartialApplicationError) as exc:
            ledger.delete(user_id, tx_id)

    assert exc.value.delta == Decimal("-30")
    state, rows = _check(Session, user_id)
    assert rows == []
    assert state.balance == Decimal("30")

    with Session() as s:
        reconcile_user(UserStore(s), TransactionStore(s), user_id, grace_seconds=0)
    state, _ = _check(Session, user_id)
    assert state.balance == Decimal("0")
