from datetime import datetime
from decimal import Decimal

from sqlalchemy import Integer, DateTime, func, ForeignKey, Numeric, String, Index, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from walletwise.db.base import Base

class Transaction(Base):
    __tablename__ = "transactions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    kind: Mapped[str] = mapped_column(String(16))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2))
    category: Mapped[str] = mapped_column(String(32), default="other")
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(16), default="cash")
    mood: Mapped[str] = mapped_column(String(16), default="neutral")
    date: Mapped[datetime] = mapped_column(DateTime, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint("kind in ('income', 'expense')", name="ck_transactions_kind"),
    )


Index("ix_transactions_user_date", Transaction.user_id, Transaction.date)
