from pydantic import BaseModel, field_validator
from datetime import datetime
from decimal import Decimal
from typing import Literal

TxKind = Literal["income", "expense"]
TxCategory = Literal[
    "food",
    "transport",
    "shopping",
    "entertainment",
    "education",
    "healthcare",
    "housing",
    "pocket_money",
    "salary",
    "freelance",
    "gift",
    "investment",
    "other",
]
PaymentMethod = Literal["cash", "card", "upi", "online"]
Mood = Literal["happy", "stressed", "bored", "sad", "calm", "neutral"]


def _positive_amount(v: Decimal | None):
    if v is None:
        return None
    if not v.is_finite():
        raise ValueError("amount must be finite")
    if v <= 0:
        raise ValueError("amount must be greater than 0")
    return v


def _trim(v: str | None):
    if v is None:
        return None
    v = v.strip()
    return v or None


def _lower(v):
    return v.strip().lower() if isinstance(v, str) else v


class TxCreate(BaseModel):
    kind: TxKind
    amount: Decimal
    category: TxCategory = "other"
    description: str | None = None
    payment_method: PaymentMethod = "cash"
    mood: Mood = "neutral"
    date: datetime | None = None

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal):
        if v is None:
            raise ValueError("amount is required")
        return _positive_amount(v)

    @field_validator("category", mode="before")
    @classmethod
    def category_normalize(cls, v):
        return _lower(v)

    @field_validator("description")
    @classmethod
    def description_trim(cls, v: str | None):
        return _trim(v)


class TxUpdate(BaseModel):
    kind: TxKind | None = None
    amount: Decimal | None = None
    category: TxCategory | None = None
    description: str | None = None
    payment_method: PaymentMethod | None = None
    mood: Mood | None = None
    date: datetime | None = None

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal | None):
        return _positive_amount(v)

    @field_validator("category", mode="before")
    @classmethod
    def category_normalize(cls, v):
        return _lower(v)

    @field_validator("description")
    @classmethod
    def description_trim(cls, v: str | None):
        return _trim(v)


class TxOut(BaseModel):
    id: int
    kind: TxKind
    amount: float
    category: str
    description: str | None
    payment_method: str
    mood: str
    date: datetime
    created_at: datetime | None = None

    class Config:
        from_attributes = True
