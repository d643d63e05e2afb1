from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from datetime import date, datetime, time
from io import BytesIO
from sqlalchemy.orm import Session
from sqlalchemy import select

from walletwise.api.deps import db, current_user, ledger
from walletwise.api.errors import to_http
from walletwise.core.errors import LedgerError
from walletwise.schemas.transaction import TxCreate, TxOut, TxUpdate, TxKind
from walletwise.models.transaction import Transaction
from walletwise.services.audit import log_event
from walletwise.services.balance_ledger import BalanceLedger
from walletwise.services.reports import build_transactions_report

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _details(t: Transaction) -> dict:
    return {
        "kind": t.kind,
        "amount": str(t.amount),
        "category": t.category,
        "date": str(t.date),
    }


@router.get("", response_model=list[TxOut])
def list_transactions(
    start: date | None = Query(None),
    end: date | None = Query(None),
    kind: TxKind | None = Query(None),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    q = select(Transaction).where(Transaction.user_id == u["user_id"])
    if start is not None:
        q = q.where(Transaction.date >= datetime.combine(start, time.min))
    if end is not None:
        q = q.where(Transaction.date <= datetime.combine(end, time.max))
    if kind is not None:
        q = q.where(Transaction.kind == kind)
    q = q.order_by(Transaction.date.desc(), Transaction.id.desc())
    return s.execute(q).scalars().all()


@router.get("/export")
def export_transactions(
    start: date | None = Query(None),
    end: date | None = Query(None),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    buf = BytesIO()
    build_transactions_report(s, u["user_id"], start, end, buf)
    buf.seek(0)

    filename = f"transactions_{start or 'all'}_to_{end or 'today'}.xlsx"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=TxOut, status_code=201)
def add_tx(body: TxCreate, s: Session = Depends(db), lg: BalanceLedger = Depends(ledger), u=Depends(current_user)):
    fields = body.model_dump(exclude={"kind", "amount"}, exclude_none=True)
    try:
        t = lg.create(u["user_id"], body.kind, body.amount, **fields)
    except LedgerError as e:
        raise to_http(e)

    log_event(s, actor=u.get("email") or u["sub"], action="tx.create", entity_type="transaction", entity_id=t.id, details=_details(t))
    return t


@router.put("/{tx_id}", response_model=TxOut)
def update_tx(tx_id: int, body: TxUpdate, s: Session = Depends(db), lg: BalanceLedger = Depends(ledger), u=Depends(current_user)):
    fields = body.model_dump(exclude_unset=True)
    kind = fields.pop("kind", None)
    amount = fields.pop("amount", None)
    try:
        t = lg.update(u["user_id"], tx_id, kind=kind, amount=amount, **fields)
    except LedgerError as e:
        raise to_http(e)

    log_event(s, actor=u.get("email") or u["sub"], action="tx.update", entity_type="transaction", entity_id=tx_id, details=_details(t))
    return t


@router.delete("/{tx_id}")
def delete_tx(tx_id: int, s: Session = Depends(db), lg: BalanceLedger = Depends(ledger), u=Depends(current_user)):
    try:
        t = lg.delete(u["user_id"], tx_id)
    except LedgerError as e:
        raise to_http(e)

    log_event(s, actor=u.get("email") or u["sub"], action="tx.delete", entity_type="transaction", entity_id=tx_id, details=_details(t))
    return {"ok": True}
