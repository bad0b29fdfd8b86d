from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import Business, Expense, ExpenseCategory, PaymentMethod
from zora.schemas.expenses import CategoryIn, ExpenseIn, ExpenseUpdate
from zora.services import expenses as svc
from zora.util.dates import local_today
from zora.util.paging import paginate
from zora.util.serialize import expense_out, money_float

router = APIRouter(prefix="/expenses", tags=["expenses"])


@router.get("/categories")
def categories(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return svc.list_categories(db)


@router.post("/categories")
def create_category(body: CategoryIn, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    c = ExpenseCategory(name=body.name, business=body.business, icon=body.icon or "receipt", color=body.color)
    db.add(c); db.commit(); db.refresh(c)
    return {"id": c.id, "name": c.name, "business": c.business.value, "icon": c.icon, "color": c.color}


@router.delete("/categories/{category_id}")
def delete_category(category_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    c = db.get(ExpenseCategory, category_id)
    if not c:
        raise HTTPException(404, detail="category not found")
    c.is_active = False
    db.commit()
    return {"ok": True}


@router.get("/")
def list_expenses(
    business: Business | None = None,
    category: str | None = None,
    payment_method: PaymentMethod | None = None,
    search: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Expense)
    if business:
        q = q.filter(Expense.business == business)
    if category:
        q = q.filter(Expense.category == category)
    if payment_method:
        q = q.filter(Expense.payment_method == payment_method)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Expense.description.ilike(like), Expense.supplier_name.ilike(like),
                         Expense.invoice_number.ilike(like)))
    if start_date:
        q = q.filter(Expense.expense_date >= start_date)
    if end_date:
        q = q.filter(Expense.expense_date <= end_date)
    rows, total, page, size = paginate(q.order_by(Expense.expense_date.desc(), Expense.created_at.desc()), page, size)
    return {"items": [expense_out(e) for e in rows], "total": total, "page": page, "size": size}


@router.get("/stats/summary")
def stats(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    today = local_today()
    month_start = today.replace(day=1)
    prev_month_end = month_start - timedelta(days=1)
    prev_month_start = prev_month_end.replace(day=1)
    year_start = today.replace(month=1, day=1)

    rows = db.query(Expense).filter(Expense.expense_date >= min(prev_month_start, year_start)).all()

    def _total(lo: date, hi: date) -> tuple[Decimal, int]:
        sel = [e for e in rows if lo <= e.expense_date <= hi]
        return sum((e.amount for e in sel), Decimal("0")), len(sel)

    this_total, this_count = _total(month_start, today)
    last_total, last_count = _total(prev_month_start, prev_month_end)
    year_total, year_count = _total(year_start, today)
    change = float((this_total - last_total) / last_total * 100) if last_total > 0 else 0.0

    by_category: dict[str, Decimal] = defaultdict(Decimal)
    by_business: dict[str, Decimal] = defaultdict(Decimal)
    for e in rows:
        if month_start <= e.expense_date <= today:
            by_category[e.category] += e.amount
            by_business[e.business.value] += e.amount

    return {
        "this_month": {"total": money_float(this_total), "count": this_count},
        "last_month": {"total": money_float(last_total), "count": last_count},
        "change_percent": round(change, 2),
        "this_year": {"total": money_float(year_total), "count": year_count},
        "by_category": [{"category": k, "total": money_float(v)}
                        for k, v in sorted(by_category.items(), key=lambda kv: -kv[1])],
        "by_business": {k: money_float(v) for k, v in by_business.items()},
    }


@router.get("/{expense_id}")
def get_expense(expense_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return expense_out(svc.get_expense(db, expense_id))


@router.post("/")
def create_expense(body: ExpenseIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    e = svc.create_expense(db, body.model_dump(), user_id=sub)
    db.commit()
    return expense_out(e)


@router.put("/{expense_id}")
def update_expense(expense_id: str, body: ExpenseUpdate, db: Session = Depends(get_db),
                   sub: str = Depends(require_auth)):
    e = svc.update_expense(db, expense_id, body.model_dump(exclude_unset=True), user_id=sub)
    db.commit()
    return expense_out(e)


@router.delete("/{expense_id}")
def delete_expense(expense_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    svc.delete_expense(db, expense_id, user_id=sub)
    db.commit()
    return {"ok": True}
