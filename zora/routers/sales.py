from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import PaymentMethod, PriceSegment, Product, Sale, SaleItem, SaleStatus
from zora.schemas.sales import ReasonIn, SaleIn
from zora.services import sales as svc
from zora.util.dates import apply_range
from zora.util.paging import paginate
from zora.util.serialize import sale_out

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post("/")
def create_sale(body: SaleIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    sale = svc.create_sale(
        db,
        items=body.items,
        warehouse_id=body.warehouse_id,
        payment_method=body.payment_method,
        price_segment=body.price_segment,
        delivery_fee=body.delivery_fee,
        cash_received=body.cash_received,
        customer_name=body.customer_name,
        notes=body.notes,
        user_id=sub,
    )
    db.commit()
    return sale_out(sale, svc.sale_items(db, sale.id))


@router.get("/")
def list_sales(
    search: str | None = None,
    status: SaleStatus | None = None,
    payment_method: PaymentMethod | None = None,
    price_segment: PriceSegment | None = None,
    warehouse_id: str | None = None,
    cash_session_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    size: int = 20,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Sale)
    if status:
        q = q.filter(Sale.status == status)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)
    if price_segment:
        q = q.filter(Sale.price_segment == price_segment)
    if warehouse_id:
        q = q.filter(Sale.warehouse_id == warehouse_id)
    if cash_session_id:
        q = q.filter(Sale.cash_session_id == cash_session_id)
    if search:
        # sale number or any product on the ticket
        with_product = (
            db.query(SaleItem.sale_id)
            .join(Product, Product.id == SaleItem.product_id)
            .filter(Product.name.ilike(f"%{search}%"))
        )
        q = q.filter(or_(
            cast(Sale.sale_number, String) == search.lstrip("#"),
            Sale.customer_name.ilike(f"%{search}%"),
            Sale.id.in_(with_product),
        ))
    q = apply_range(q, Sale.created_at, start_date, end_date)
    rows, total, page, size = paginate(q.order_by(Sale.sale_number.desc()), page, size)
    return {"items": [sale_out(s) for s in rows], "total": total, "page": page, "size": size}


@router.get("/{sale_id}")
def get_sale(sale_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    sale = svc.get_sale(db, sale_id)
    return sale_out(sale, svc.sale_items(db, sale.id))


@router.delete("/{sale_id}")
def delete_sale(sale_id: str, body: ReasonIn | None = None, db: Session = Depends(get_db),
                sub: str = Depends(require_admin)):
    sale = svc.delete_sale(db, sale_id, sub, reason=body.reason if body else None)
    db.commit()
    return sale_out(sale)
