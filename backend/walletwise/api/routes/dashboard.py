from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from walletwise.api.deps import db, current_user
from walletwise.schemas.dashboard import DashboardOut
from walletwise.services.dashboard import build_summary
from walletwise.utils.timezone import today_local

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardOut)
def summary(s: Session = Depends(db), u=Depends(current_user)):
    return build_summary(s, u["user_id"], today_local())
