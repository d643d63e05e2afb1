from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from walletwise.api.deps import db
from walletwise.schemas.auth import LoginIn, TokenOut
from walletwise.schemas.user import RegisterIn
from walletwise.models.user import User
from walletwise.core.security import hash_password, verify_password, create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=TokenOut, status_code=201)
def register(body: RegisterIn, s: Session = Depends(db)):
    exists = s.execute(select(User).where(User.email == body.email)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="user_exists")
    u = User(email=body.email, full_name=body.full_name, password_hash=hash_password(body.password), role="user")
    s.add(u)
    s.commit()
    s.refresh(u)
    return {"access_token": create_access_token(u.id, u.email, u.role), "role": u.role}

@router.post("/login", response_model=TokenOut)
def login(body: LoginIn, s: Session = Depends(db)):
    email = (body.email or "").strip().lower()
    u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not u or not verify_password(body.password, u.password_hash):
        raise HTTPException(status_code=401, detail="bad_credentials")
    return {"access_token": create_access_token(u.id, u.email, u.role), "role": u.role}
