from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from walletwise.core.config import settings

pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _truncate(p: str) -> str:
    # bcrypt only looks at the first 72 bytes
    b = p.encode("utf-8")
    if len(b) > 72:
        p = b[:72].decode("utf-8", errors="ignore")
    return p


def hash_password(p: str) -> str:
    if p is None:
        raise ValueError("password is required")
    return pwd.hash(_truncate(str(p)))


def verify_password(p: str, hashed: str | None) -> bool:
    if p is None or hashed is None:
        return False
    return pwd.verify(_truncate(str(p)), hashed)


def create_access_token(user_id: int, email: str, role: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.jwt_expires_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
