from datetime import datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from walletwise.core.errors import ConflictError, NotFoundError, ValidationError
from walletwise.db.base import Base
from walletwise.models.transaction import Transaction
from walletwise.models.user import User
from walletwise.services.balance_ledger import BalanceLedger, signed_effect
from walletwise.services.stores import TransactionStore, UserStore


@pytest.fixture(scope="session")
def engine():
    eng = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session(engine):
    connection = engine.connect()
    trans = connection.begin()
    Session = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    s = Session()
    try:
        yield s
    finally:
        s.close()
        trans.rollback()
        connection.close()


@pytest.fixture()
def ledger(session):
    return BalanceLedger(TransactionStore(session), UserStore(session))


def _mk_user(session, balance: Decimal = Decimal("0")) -> User:
    u = User(
        email=f"student-{uuid4().hex[:10]}@example.com",
        full_name="Test Student",
        password_hash="x",
        role="user",
        wallet_balance=balance,
    )
    session.add(u)
    session.commit()
    return u


def _balance(session, user_id: int) -> Decimal:
    return UserStore(session).get_balance(user_id)


def test_signed_effect_directions():
    assert signed_effect("income", Decimal("12.50")) == Decimal("12.50")
    assert signed_effect("expense", Decimal("12.50")) == Decimal("-12.50")


def test_create_income_then_delete_returns_to_zero(session, ledger):
    u = _mk_user(session)

    t = ledger.create(u.id, "income", Decimal("5000"), category="salary")
    assert t.id is not None
    assert _balance(session, u.id) == Decimal("5000")

    ledger.delete(u.id, t.id)
    assert _balance(session, u.id) == Decimal("0")
    assert TransactionStore(session).find_by_id(u.id, t.id) is None


def test_expense_update_reverses_old_effect_before_applying_new(session, ledger):
    u = _mk_user(session, Decimal("1000"))

    t = ledger.create(u.id, "expense", Decimal("300"), category="food")
    assert _balance(session, u.id) == Decimal("700")

    ledger.update(u.id, t.id, amount=Decimal("500"))
    assert _balance(session, u.id) == Decimal("500")


def test_income_changed_to_expense_nets_against_baseline(session, ledger):
    u = _mk_user(session, Decimal("250"))

    t = ledger.create(u.id, "income", Decimal("100"))
    assert _balance(session, u.id) == Decimal("350")

    updated = ledger.update(u.id, t.id, kind="expense", amount=Decimal("40"))
    assert updated.kind == "expense"
    assert Decimal(str(updated.amount)) == Decimal("40")
    assert _balance(session, u.id) == Decimal("210")


def test_description_only_update_leaves_balance(session, ledger):
    u = _mk_user(session)
    t = ledger.create(u.id, "expense", Decimal("19.99"), description="lunch")
    before = _balance(session, u.id)

    updated = ledger.update(u.id, t.id, description="  team lunch  ", mood="happy", payment_method="upi")
    assert updated.description == "team lunch"
    assert updated.mood == "happy"
    assert updated.payment_method == "upi"
    assert _balance(session, u.id) == before


def test_update_bumps_version(session, ledger):
    u = _mk_user(session)
    t = ledger.create(u.id, "income", Decimal("10"))
    assert t.version == 1

    updated = ledger.update(u.id, t.id, category="gift")
    assert updated.version == 2
    assert updated.category == "gift"


def test_update_can_move_date(session, ledger):
    u = _mk_user(session)
    t = ledger.create(u.id, "expense", Decimal("8"), date=datetime(2026, 3, 1, 9, 30))

    updated = ledger.update(u.id, t.id, date=datetime(2026, 2, 27, 18, 0))
    assert updated.date == datetime(2026, 2, 27, 18, 0)
    assert _balance(session, u.id) == Decimal("-8")


@pytest.mark.parametrize("amount", [0, -5, Decimal("NaN"), float("inf"), "abc", None, Decimal("0.001")])
def test_create_rejects_bad_amount_without_side_effects(session, ledger, amount):
    u = _mk_user(session, Decimal("42"))

    with pytest.raises(ValidationError):
        ledger.create(u.id, "income", amount)

    assert _balance(session, u.id) == Decimal("42")
    assert TransactionStore(session).find_all_by_user(u.id) == []


def test_create_rejects_unknown_kind(session, ledger):
    u = _mk_user(session)
    with pytest.raises(ValidationError):
        ledger.create(u.id, "refund", Decimal("10"))
    assert TransactionStore(session).find_all_by_user(u.id) == []


def test_create_rejects_unknown_category(session, ledger):
    u = _mk_user(session)
    with pytest.raises(ValidationError):
        ledger.create(u.id, "expense", Decimal("10"), category="yachts")
    assert _balance(session, u.id) == Decimal("0")


def test_update_rejects_non_positive_amount(session, ledger):
    u = _mk_user(session)
    t = ledger.create(u.id, "income", Decimal("10"))

    with pytest.raises(ValidationError):
        ledger.update(u.id, t.id, amount=Decimal("0"))

    assert _balance(session, u.id) == Decimal("10")


def test_other_users_transaction_is_not_found(session, ledger):
    owner = _mk_user(session)
    intruder = _mk_user(session)
    t = ledger.create(owner.id, "income", Decimal("75"))

    with pytest.raises(NotFoundError) as exc:
        ledger.update(intruder.id, t.id, amount=Decimal("1"))
    assert exc.value.code == "tx_not_found"

    with pytest.raises(NotFoundError):
        ledger.delete(intruder.id, t.id)

    assert _balance(session, owner.id) == Decimal("75")
    assert _balance(session, intruder.id) == Decimal("0")


def test_delete_unknown_transaction(session, ledger):
    u = _mk_user(session)
    with pytest.raises(NotFoundError):
        ledger.delete(u.id, 999999)


class _UpdateRacesAhead(TransactionStore):
    """Another request writes the row between our read and our write."""

    def update(self, user_id, tx_id, fields, expected_version):
        super().update(user_id, tx_id, {"mood": "stressed"}, expected_version)
        return super().update(user_id, tx_id, fields, expected_version)


class _DeleteRacesAhead(TransactionStore):
    def update(self, user_id, tx_id, fields, expected_version):
        super().delete(user_id, tx_id, expected_version)
        return super().update(user_id, tx_id, fields, expected_version)


def test_stale_update_is_rejected_without_touching_balance(session):
    u = _mk_user(session)
    plain = BalanceLedger(TransactionStore(session), UserStore(session))
    t = plain.create(u.id, "expense", Decimal("60"))

    racing = BalanceLedger(_UpdateRacesAhead(session), UserStore(session))
    with pytest.raises(ConflictError):
        racing.update(u.id, t.id, amount=Decimal("90"))

    assert _balance(session, u.id) == Decimal("-60")
    row = TransactionStore(session).find_by_id(u.id, t.id)
    assert Decimal(str(row.amount)) == Decimal("60")
    assert row.mood == "stressed"


def test_update_losing_to_delete_does_not_resurrect_effect(session):
    u = _mk_user(session)
    plain = BalanceLedger(TransactionStore(session), UserStore(session))
    t = plain.create(u.id, "income", Decimal("120"))

    racing = BalanceLedger(_DeleteRacesAhead(session), UserStore(session))
    with pytest.raises(ConflictError):
        racing.update(u.id, t.id, kind="expense")

    # the racing delete removed the row without its own increment
    assert _balance(session, u.id) == Decimal("120")
    assert TransactionStore(session).find_all_by_user(u.id) == []


class _DeleteLandsAfterUpdate(TransactionStore):
    """Another request deletes the row right after our update commits."""

    def update(self, user_id, tx_id, fields, expected_version):
        row = super().update(user_id, tx_id, fields, expected_version)
        BalanceLedger(TransactionStore(self.s), UserStore(self.s)).delete(user_id, tx_id)
        return row


def test_committed_update_applies_delta_even_if_row_is_deleted_next(session):
    u = _mk_user(session)
    t = BalanceLedger(TransactionStore(session), UserStore(session)).create(u.id, "income", Decimal("100"))

    racing = BalanceLedger(_DeleteLandsAfterUpdate(session), UserStore(session))
    updated = racing.update(u.id, t.id, kind="expense", amount=Decimal("40"))

    assert updated.kind == "expense"
    assert updated.version == 2
    assert TransactionStore(session).find_all_by_user(u.id) == []
    assert _balance(session, u.id) == Decimal("0")
    assert UserStore(session).get_state(u.id).inflight == 0


def test_stale_delete_returns_none(session, ledger):
    u = _mk_user(session)
    t = ledger.create(u.id, "income", Decimal("5"))
    store = TransactionStore(session)

    assert store.update(u.id, t.id, {"description": "edited"}, expected_version=1) is not None
    assert store.delete(u.id, t.id, expected_version=1) is None
    assert store.find_by_id(u.id, t.id) is not None


def test_create_defaults(session, ledger):
    u = _mk_user(session)
    t = ledger.create(u.id, "expense", "12.345")

    row = session.get(Transaction, t.id)
    assert row.category == "other"
    assert row.payment_method == "cash"
    assert row.mood == "neutral"
    assert row.date is not None
    assert Decimal(str(row.amount)) == Decimal("12.35")
