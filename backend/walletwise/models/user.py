from datetime import datetime
from decimal import Decimal

from sqlalchemy import String, Integer, DateTime, func, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from walletwise.db.base import Base

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    full_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[str] = mapped_column(String(16), default="user")
    # written only by the balance ledger increments and the reconciliation job
    wallet_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"), server_default="0")

    # ledger writes started / not yet settled by their increment
    ledger_seq: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    ledger_inflight: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    ledger_touched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
