from datetime import date

from fastapi import APIRouter, Depends, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import Purchase
from zora.schemas.purchases import PurchaseIn
from zora.services import purchases as svc
from zora.util.dates import apply_range
from zora.util.paging import paginate
from zora.util.serialize import purchase_out

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post("/")
def create_purchase(body: PurchaseIn, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    p = svc.create_purchase(
        db,
        items=body.items,
        warehouse_id=body.warehouse_id,
        supplier_name=body.supplier_name,
        invoice_number=body.invoice_number,
        notes=body.notes,
        tax=body.tax,
        discount=body.discount,
        user_id=sub,
    )
    db.commit()
    return purchase_out(p, svc.purchase_items(db, p.id))


@router.get("/")
def list_purchases(
    response: Response,
    search: str | None = None,
    warehouse_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Purchase)
    if warehouse_id:
        q = q.filter(Purchase.warehouse_id == warehouse_id)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Purchase.supplier_name.ilike(like), Purchase.invoice_number.ilike(like),
                         Purchase.notes.ilike(like)))
    q = apply_range(q, Purchase.created_at, start_date, end_date)
    rows, total, page, size = paginate(q.order_by(Purchase.purchase_number.desc()), page, size)
    response.headers["X-Total-Count"] = str(total)
    return {
        "items": [purchase_out(p, svc.purchase_items(db, p.id)) for p in rows],
        "total": total, "page": page, "size": size,
    }


@router.get("/stats/summary")
def stats(start_date: date | None = None, end_date: date | None = None,
          db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return svc.stats(db, start_date, end_date)


@router.get("/{purchase_id}")
def get_purchase(purchase_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    p = svc.get_purchase(db, purchase_id)
    return purchase_out(p, svc.purchase_items(db, p.id))


@router.delete("/{purchase_id}")
def delete_purchase(purchase_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    svc.delete_purchase(db, purchase_id, user_id=sub)
    db.commit()
    return {"ok": True}
