from fastapi import APIRouter, Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import Order, OrderStatus
from zora.schemas.sales import OrderIn, OrderPayIn, ReasonIn
from zora.services import orders as svc
from zora.services.sales import sale_items
from zora.util.paging import paginate
from zora.util.serialize import money_float, order_out, sale_out

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("/")
def list_orders(
    status: OrderStatus | None = None,
    search: str | None = None,
    page: int = 1,
    size: int = 20,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Order)
    if status:
        q = q.filter(Order.status == status)
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Order.customer_name.ilike(like), Order.customer_phone.ilike(like)))
    rows, total, page, size = paginate(q.order_by(Order.order_number.desc()), page, size)
    return {"items": [order_out(o) for o in rows], "total": total, "page": page, "size": size}


@router.get("/stats/summary")
def stats(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    rows = (
        db.query(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
        .group_by(Order.status)
        .all()
    )
    out = {s.value.lower(): {"count": 0, "total": 0.0} for s in OrderStatus}
    for status, count, total in rows:
        out[status.value.lower()] = {"count": count, "total": money_float(total)}
    return out


@router.get("/{order_id}")
def get_order(order_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    o = svc.get_order(db, order_id)
    return order_out(o, svc.order_items(db, o.id))


@router.post("/")
def create_order(body: OrderIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    o = svc.create_order(
        db,
        customer_name=body.customer_name,
        customer_phone=body.customer_phone,
        items=body.items,
        warehouse_id=body.warehouse_id,
        price_segment=body.price_segment,
        due_date=body.due_date,
        notes=body.notes,
        user_id=sub,
    )
    db.commit()
    return order_out(o, svc.order_items(db, o.id))


@router.post("/{order_id}/pay")
def pay_order(order_id: str, body: OrderPayIn | None = None, db: Session = Depends(get_db),
              sub: str = Depends(require_auth)):
    body = body or OrderPayIn()
    o, sale = svc.pay_order(db, order_id, body.payment_method, user_id=sub)
    db.commit()
    return {"order": order_out(o), "sale": sale_out(sale, sale_items(db, sale.id))}


@router.post("/{order_id}/cancel")
def cancel_order(order_id: str, body: ReasonIn | None = None, db: Session = Depends(get_db),
                 sub: str = Depends(require_auth)):
    o = svc.cancel_order(db, order_id, user_id=sub, reason=body.reason if body else None)
    db.commit()
    return order_out(o)


@router.delete("/{order_id}")
def delete_order(order_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    svc.delete_order(db, order_id, user_id=sub)
    db.commit()
    return {"ok": True}
