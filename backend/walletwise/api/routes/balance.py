from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from walletwise.api.deps import db, current_user, require_admin
from walletwise.api.errors import to_http
from walletwise.core.errors import LedgerError
from walletwise.schemas.balance import ReconcileOut
from walletwise.services.reconciliation import reconcile_all, reconcile_user, record_drifts
from walletwise.services.stores import TransactionStore, UserStore

router = APIRouter(prefix="/balance", tags=["balance"])


@router.post("/reconcile", response_model=ReconcileOut)
def reconcile_me(s: Session = Depends(db), u=Depends(current_user)):
    try:
        drift = reconcile_user(UserStore(s), TransactionStore(s), u["user_id"])
    except LedgerError as e:
        raise to_http(e)
    drifts = [drift] if drift is not None else []
    record_drifts(s, u.get("email") or u["sub"], drifts)
    return {"checked": 1, "corrected": [d.as_dict() for d in drifts]}


@router.post("/reconcile/all", response_model=ReconcileOut)
def reconcile_everyone(s: Session = Depends(db), admin=Depends(require_admin)):
    users = UserStore(s)
    try:
        checked = len(users.all_user_ids())
        drifts = reconcile_all(users, TransactionStore(s))
    except LedgerError as e:
        raise to_http(e)
    record_drifts(s, admin.get("email") or admin["sub"], drifts)
    return {"checked": checked, "corrected": [d.as_dict() for d in drifts]}
