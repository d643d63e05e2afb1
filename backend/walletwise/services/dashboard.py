from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from walletwise.models.transaction import Transaction
from walletwise.models.user import User
from walletwise.schemas.transaction import TxOut

ZERO = Decimal("0")


def _month_start(d: date) -> date:
    return date(d.year, d.month, 1)


def _prev_month_start(d: date) -> date:
    if d.month == 1:
        return date(d.year - 1, 12, 1)
    return date(d.year, d.month - 1, 1)


def _as_date(v) -> date:
    return v.date() if isinstance(v, datetime) else v


def _total(txs: list[Transaction], kind: str) -> Decimal:
    return sum((Decimal(str(t.amount)) for t in txs if t.kind == kind), ZERO)


def build_summary(s: Session, user_id: int, today: date) -> dict:
    user = s.execute(select(User).where(User.id == user_id)).scalar_one()
    txs = (
        s.execute(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        )
        .scalars()
        .all()
    )

    month_start = _month_start(today)
    prev_start = _prev_month_start(today)

    this_month = [t for t in txs if month_start <= _as_date(t.date) <= today]
    prev_month = [t for t in txs if prev_start <= _as_date(t.date) < month_start]

    monthly_income = _total(this_month, "income")
    monthly_expenses = _total(this_month, "expense")
    prev_expenses = _total(prev_month, "expense")

    if prev_expenses > 0:
        trend = (monthly_expenses - prev_expenses) / prev_expenses * 100
    else:
        trend = Decimal("100") if monthly_expenses > 0 else ZERO

    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for t in this_month:
        if t.kind == "expense":
            by_category[t.category or "other"] += Decimal(str(t.amount))

    by_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
    week_start = today - timedelta(days=6)
    for t in txs:
        d = _as_date(t.date)
        if t.kind == "expense" and week_start <= d <= today:
            by_day[d] += Decimal(str(t.amount))

    return {
        "stats": {
            # stored balance is the source of truth, not a re-sum of txs
            "total_balance": float(user.wallet_balance),
            "monthly_income": float(monthly_income),
            "monthly_expenses": float(monthly_expenses),
            "prev_month_expenses": float(prev_expenses),
            "expense_trend_percent": float(round(trend, 2)),
        },
        "category_spending": [
            {"name": k, "amount": float(v)}
            for k, v in sorted(by_category.items(), key=lambda kv: kv[1], reverse=True)
        ],
        "weekly_expenses": [
            {"day": week_start + timedelta(days=i), "amount": float(by_day[week_start + timedelta(days=i)])}
            for i in range(7)
        ],
        "recent_transactions": [TxOut.model_validate(t) for t in txs[:10]],
    }
