from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from walletwise.db.session import SessionLocal
from walletwise.core.security import decode_token
from walletwise.services.balance_ledger import BalanceLedger
from walletwise.services.stores import TransactionStore, UserStore

bearer = HTTPBearer()

def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()

def current_user(creds: HTTPAuthorizationCredentials = Depends(bearer)):
    try:
        claims = decode_token(creds.credentials)
        claims["user_id"] = int(claims["sub"])
    except Exception:
        raise HTTPException(status_code=401, detail="invalid_token")
    return claims

def require_admin(u=Depends(current_user)):
    if u.get("role") != "admin":
        raise HTTPException(status_code=403, detail="admin_only")
    return u

def ledger(s: Session = Depends(db)) -> BalanceLedger:
    return BalanceLedger(TransactionStore(s), UserStore(s))
