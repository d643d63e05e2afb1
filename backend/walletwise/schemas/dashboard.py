from pydantic import BaseModel
from datetime import date

from walletwise.schemas.transaction import TxOut


class CategorySpend(BaseModel):
    name: str
    amount: float


class DaySpend(BaseModel):
    day: date
    amount: float


class DashboardStats(BaseModel):
    total_balance: float
    monthly_income: float
    monthly_expenses: float
    prev_month_expenses: float
    expense_trend_percent: float


class DashboardOut(BaseModel):
    stats: DashboardStats
    category_spending: list[CategorySpend]
    weekly_expenses: list[DaySpend]
    recent_transactions: list[TxOut]
