from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_auth
from zora.models.core import CashRef, CashSession, MoveType
from zora.schemas.cash import CashMovementIn, CloseSessionIn, OpenSessionIn
from zora.services import cash as svc
from zora.util.dates import apply_range
from zora.util.paging import paginate
from zora.util.serialize import (
    cash_movement_out, expense_out, loan_out, order_out, return_out, sale_out, session_out,
)

router = APIRouter(prefix="/cash", tags=["cash"])


@router.post("/open")
def open_session(body: OpenSessionIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    s = svc.open_session(db, body.warehouse_id, body.opening_amount, sub, notes=body.notes)
    db.commit()
    return session_out(s)


@router.get("/session")
def current_session(warehouse_id: str | None = None, db: Session = Depends(get_db),
                    sub: str = Depends(require_auth)):
    wh = svc.get_warehouse(db, warehouse_id)
    s = svc.get_open_session(db, wh.id)
    if not s:
        return {"session": None}
    return {"session": session_out(s), "totals": svc.current_totals(db, s).as_dict()}


@router.post("/close")
def close_session(body: CloseSessionIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    try:
        s, rec, summary = svc.close_session(
            db, body.warehouse_id, body.closing_amount, body.username, body.password, notes=body.notes,
        )
    except PermissionError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    db.commit()
    return {
        "session": session_out(s),
        "reconciliation": rec.as_dict(),
        "summary": {k: (float(v) if not isinstance(v, int) else v) for k, v in summary.items()},
    }


@router.post("/movements")
def create_movement(body: CashMovementIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    wh = svc.get_warehouse(db, body.warehouse_id)
    m = svc.record_movement(db, wh.id, MoveType(body.type), body.amount, CashRef.MANUAL,
                            notes=body.notes, user_id=sub, required=True)
    db.commit()
    return cash_movement_out(m)


@router.get("/movements")
def list_movements(warehouse_id: str | None = None, session_id: str | None = None,
                   db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    """Ledger of a given session, or of the warehouse's open one."""
    if not session_id:
        wh = svc.get_warehouse(db, warehouse_id)
        s = svc.get_open_session(db, wh.id)
        if not s:
            return []
        session_id = s.id
    elif not db.get(CashSession, session_id):
        raise HTTPException(404, detail="cash session not found")
    return [cash_movement_out(m) for m in svc.session_movements(db, session_id)]


@router.get("/closures")
def list_closures(
    response: Response,
    warehouse_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    size: int = 20,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(CashSession).filter(CashSession.closed_at.is_not(None))
    if warehouse_id:
        q = q.filter(CashSession.warehouse_id == warehouse_id)
    q = apply_range(q, CashSession.closed_at, start_date, end_date)
    rows, total, page, size = paginate(q.order_by(CashSession.closed_at.desc()), page, size)
    response.headers["X-Total-Count"] = str(total)
    return {"items": [session_out(s) for s in rows], "total": total, "page": page, "size": size}


@router.get("/closures/{session_id}")
def closure_detail(session_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    s = db.get(CashSession, session_id)
    if not s:
        raise HTTPException(404, detail="cash session not found")
    d = svc.closure_detail(db, s)
    return {
        "session": session_out(s),
        "reconciliation": svc.reconcile(s.opening_amount, d["movements"], s.closing_amount).as_dict(),
        "sales": [sale_out(x) for x in d["sales"]],
        "fiados": [order_out(x) for x in d["fiados"]],
        "returns": [return_out(x) for x in d["returns"]],
        "expenses": [expense_out(x) for x in d["expenses"]],
        "loans": [loan_out(x) for x in d["loans"]],
        "movements": [cash_movement_out(x) for x in d["movements"]],
    }
