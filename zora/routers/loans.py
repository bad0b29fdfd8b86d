from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import Loan, LoanStatus, LoanType
from zora.schemas.expenses import LoanIn, LoanPaymentIn
from zora.services import loans as svc
from zora.util.dates import local_today
from zora.util.paging import paginate
from zora.util.serialize import loan_out, money_float

router = APIRouter(prefix="/loans", tags=["loans"])


@router.get("/")
def list_loans(
    status: LoanStatus | None = None,
    type: LoanType | None = None,
    search: str | None = None,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Loan)
    if status:
        q = q.filter(Loan.status == status)
    if type:
        q = q.filter(Loan.type == type)
    if search:
        q = q.filter(Loan.borrower_name.ilike(f"%{search}%"))
    rows, total, page, size = paginate(q.order_by(Loan.created_at.desc()), page, size)
    return {"items": [loan_out(x) for x in rows], "total": total, "page": page, "size": size}


@router.get("/stats/summary")
def stats(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    def _agg(*conds):
        count, amount, balance = db.query(
            func.count(Loan.id), func.coalesce(func.sum(Loan.total_amount), 0),
            func.coalesce(func.sum(Loan.balance), 0),
        ).filter(*conds).one()
        return {"count": count, "total": money_float(amount), "balance": money_float(balance)}

    by_type = {
        t.value: _agg(Loan.type == t, Loan.status == LoanStatus.ACTIVE) for t in LoanType
    }
    return {
        "active": _agg(Loan.status == LoanStatus.ACTIVE),
        "paid": _agg(Loan.status == LoanStatus.PAID),
        "overdue": _agg(Loan.status == LoanStatus.ACTIVE, Loan.due_date.is_not(None),
                        Loan.due_date < local_today()),
        "by_type": by_type,
    }


@router.get("/{loan_id}")
def get_loan(loan_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    loan = svc.get_loan(db, loan_id)
    return loan_out(loan, svc.loan_payments(db, loan.id))


@router.post("/")
def create_loan(body: LoanIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    loan = svc.create_loan(db, body.model_dump(), user_id=sub)
    db.commit()
    return loan_out(loan, [])


@router.post("/{loan_id}/payments")
def add_payment(loan_id: str, body: LoanPaymentIn, db: Session = Depends(get_db),
                sub: str = Depends(require_auth)):
    loan, _ = svc.add_payment(db, loan_id, body.amount, body.payment_method, notes=body.notes, user_id=sub)
    db.commit()
    return loan_out(loan, svc.loan_payments(db, loan.id))


@router.post("/{loan_id}/cancel")
def cancel_loan(loan_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    loan = svc.cancel_loan(db, loan_id)
    db.commit()
    return loan_out(loan)
