from pydantic import BaseModel, field_validator
from datetime import datetime
import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class RegisterIn(BaseModel):
    email: str
    password: str
    full_name: str | None = None

    @field_validator("email")
    @classmethod
    def email_normalize(cls, v: str):
        v = (v or "").strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("please provide a valid email")
        if len(v) > 255:
            raise ValueError("email too long")
        return v

    @field_validator("password")
    @classmethod
    def password_min(cls, v: str):
        v = str(v)
        if len(v) < 6:
            raise ValueError("password must be at least 6 characters")
        return v

    @field_validator("full_name")
    @classmethod
    def full_name_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        return v[:128] or None


class UserOut(BaseModel):
    id: int
    email: str
    full_name: str | None
    role: str
    wallet_balance: float
    created_at: datetime | None = None

    class Config:
        from_attributes = True
