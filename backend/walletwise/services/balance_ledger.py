from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from walletwise.core.constants import CATEGORIES, MOODS, PAYMENT_METHODS, TX_KINDS
from walletwise.core.errors import (
    CommitUnconfirmedError,
    ConflictError,
    NotFoundError,
    PartialApplicationError,
    ValidationError,
)
from walletwise.models.transaction import Transaction
from walletwise.services.stores import TransactionStore, UserStore
from walletwise.utils.timezone import now_local

logger = logging.getLogger(__name__)

Q2 = Decimal("0.01")

DETAIL_FIELDS = ("category", "description", "payment_method", "mood", "date")


def signed_effect(kind: str, amount) -> Decimal:
    """Contribution of one transaction to the wallet balance."""
    amt = Decimal(str(amount))
    return amt if kind == "income" else -amt


def _check_kind(kind) -> str:
    if kind not in TX_KINDS:
        raise ValidationError("kind must be either income or expense")
    return kind


def _check_amount(amount) -> Decimal:
    if amount is None or isinstance(amount, bool):
        raise ValidationError("amount is required")
    try:
        amt = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError("amount must be a number")
    if not amt.is_finite():
        raise ValidationError("amount must be finite")
    if amt <= 0:
        raise ValidationError("amount must be greater than 0")
    amt = amt.quantize(Q2, rounding=ROUND_HALF_UP)
    if amt <= 0:
        raise ValidationError("amount must be at least 0.01")
    return amt


def _check_details(details: dict) -> dict:
    unknown = set(details) - set(DETAIL_FIELDS)
    if unknown:
        raise ValidationError(f"unknown fields: {', '.join(sorted(unknown))}")

    out: dict = {}
    if details.get("category") is not None:
        category = str(details["category"]).strip().lower()
        if category not in CATEGORIES:
            raise ValidationError(f"unknown category: {category}")
        out["category"] = category
    if "description" in details:
        d = details["description"]
        out["description"] = (str(d).strip() or None) if d is not None else None
    if details.get("payment_method") is not None:
        if details["payment_method"] not in PAYMENT_METHODS:
            raise ValidationError("unknown payment_method")
        out["payment_method"] = details["payment_method"]
    if details.get("mood") is not None:
        if details["mood"] not in MOODS:
            raise ValidationError("unknown mood")
        out["mood"] = details["mood"]
    if details.get("date") is not None:
        if not isinstance(details["date"], datetime):
            raise ValidationError("date must be a datetime")
        out["date"] = details["date"]
    return out


class BalanceLedger:
    """Keeps ``users.wallet_balance`` in step with the user's transactions.

    Every mutation marks the user as having a write in flight, writes the
    transaction row, then applies the signed delta with an atomic increment
    that also clears the mark. Once the row write may have committed, any
    failure is reported as ``PartialApplicationError`` and the row stays; the
    reconciliation job fixes the balance later. Increments are never retried
    here.
    """

    def __init__(self, transactions: TransactionStore, users: UserStore):
        self.transactions = transactions
        self.users = users

    def _pending(self, user_id: int, tx_id: int | None, delta: Decimal, e: Exception) -> PartialApplicationError:
        logger.error(
            "balance increment not applied user_id=%s tx_id=%s delta=%s, reconciliation required",
            user_id,
            tx_id,
            delta,
            exc_info=e,
        )
        return PartialApplicationError(user_id, tx_id, delta, cause=e)

    def _apply(self, user_id: int, tx_id: int, delta: Decimal) -> None:
        try:
            self.users.increment_balance(user_id, delta)
        except Exception as e:
            raise self._pending(user_id, tx_id, delta, e) from e

    def _release(self, user_id: int) -> None:
        # the row write never landed; a mark left behind expires on its own
        try:
            self.users.end_mutation(user_id)
        except Exception as e:
            logger.warning("could not clear in-flight mark user_id=%s", user_id, exc_info=e)

    def _require(self, user_id: int, tx_id: int) -> Transaction:
        t = self.transactions.find_by_id(user_id, tx_id)
        if t is None:
            raise NotFoundError(f"transaction {tx_id} not found", code="tx_not_found")
        return t

    def create(self, user_id: int, kind: str, amount, **details) -> Transaction:
        kind = _check_kind(kind)
        amt = _check_amount(amount)
        fields = _check_details(details)
        fields.setdefault("category", "other")
        fields.setdefault("payment_method", "cash")
        fields.setdefault("mood", "neutral")
        fields.setdefault("date", now_local().replace(tzinfo=None))
        delta = signed_effect(kind, amt)

        self.users.begin_mutation(user_id)
        try:
            t = self.transactions.insert(
                Transaction(user_id=user_id, kind=kind, amount=amt, version=1, **fields)
            )
        except CommitUnconfirmedError as e:
            raise self._pending(user_id, e.entity_id, delta, e) from e
        except Exception:
            self._release(user_id)
            raise

        self._apply(user_id, t.id, delta)
        logger.info("tx created user_id=%s tx_id=%s delta=%s", user_id, t.id, delta)
        return t

    def update(self, user_id: int, tx_id: int, kind: str | None = None, amount=None, **details) -> Transaction:
        if kind is not None:
            _check_kind(kind)
        amt = _check_amount(amount) if amount is not None else None
        fields = _check_details(details)

        old = self._require(user_id, tx_id)
        old_kind = old.kind
        old_amount = Decimal(str(old.amount))
        old_version = old.version

        new_kind = kind if kind is not None else old_kind
        new_amount = amt if amt is not None else old_amount
        delta = -signed_effect(old_kind, old_amount) + signed_effect(new_kind, new_amount)

        fields["kind"] = new_kind
        fields["amount"] = new_amount

        # a zero delta cannot move the balance, so reconciliation need not wait on it
        marked = delta != 0
        if marked:
            self.users.begin_mutation(user_id)
        try:
            t = self.transactions.update(user_id, tx_id, fields, expected_version=old_version)
        except CommitUnconfirmedError as e:
            raise self._pending(user_id, tx_id, delta, e) from e
        except Exception:
            if marked:
                self._release(user_id)
            raise

        if t is None:
            if marked:
                self._release(user_id)
            raise ConflictError(f"transaction {tx_id} changed concurrently")

        if marked:
            self._apply(user_id, tx_id, delta)
        logger.info("tx updated user_id=%s tx_id=%s delta=%s", user_id, tx_id, delta)
        return t

    def delete(self, user_id: int, tx_id: int) -> Transaction:
        old = self._require(user_id, tx_id)
        old_version = old.version
        delta = -signed_effect(old.kind, old.amount)

        self.users.begin_mutation(user_id)
        try:
            gone = self.transactions.delete(user_id, tx_id, expected_version=old_version)
        except CommitUnconfirmedError as e:
            raise self._pending(user_id, tx_id, delta, e) from e
        except Exception:
            self._release(user_id)
            raise

        if gone is None:
            self._release(user_id)
            raise ConflictError(f"transaction {tx_id} changed concurrently")

        self._apply(user_id, tx_id, delta)
        logger.info("tx deleted user_id=%s tx_id=%s delta=%s", user_id, tx_id, delta)
        return gone
