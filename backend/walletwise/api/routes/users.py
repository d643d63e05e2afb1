from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from walletwise.api.deps import db, require_admin, current_user
from walletwise.schemas.user import UserOut
from walletwise.models.user import User

router = APIRouter(prefix="/users", tags=["users"])

@router.get("", response_model=list[UserOut])
def list_users(s: Session = Depends(db), u=Depends(require_admin)):
    return s.execute(select(User).order_by(User.email.asc())).scalars().all()

@router.get("/me", response_model=UserOut)
def me(s: Session = Depends(db), u=Depends(current_user)):
    # balance is re-read on every call, ledger operations never return it
    user = s.execute(select(User).where(User.id == u["user_id"])).scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=404, detail="user_not_found")
    return user
