from datetime import date

from fastapi import APIRouter, Depends, Response
from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import ProductReturn
from zora.schemas.returns import ReturnIn
from zora.services import returns as svc
from zora.util.dates import apply_range
from zora.util.paging import paginate
from zora.util.serialize import money_float, return_out

router = APIRouter(prefix="/returns", tags=["returns"])


def _filtered(db: Session, start_date, end_date, product_id=None, warehouse_id=None, sale_id=None):
    q = db.query(ProductReturn)
    if product_id:
        q = q.filter(ProductReturn.product_id == product_id)
    if warehouse_id:
        q = q.filter(ProductReturn.warehouse_id == warehouse_id)
    if sale_id:
        q = q.filter(ProductReturn.sale_id == sale_id)
    return apply_range(q, ProductReturn.created_at, start_date, end_date)


@router.post("/")
def create_return(body: ReturnIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    r = svc.create_return(db, **body.model_dump(), user_id=sub)
    db.commit()
    return return_out(r)


@router.get("/")
def list_returns(
    response: Response,
    start_date: date | None = None,
    end_date: date | None = None,
    product_id: str | None = None,
    warehouse_id: str | None = None,
    sale_id: str | None = None,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = _filtered(db, start_date, end_date, product_id, warehouse_id, sale_id)
    rows, total, page, size = paginate(q.order_by(ProductReturn.return_number.desc()), page, size)
    response.headers["X-Total-Count"] = str(total)
    return {"items": [return_out(r) for r in rows], "total": total, "page": page, "size": size}


@router.get("/summary")
def summary(start_date: date | None = None, end_date: date | None = None,
            db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    q = _filtered(db, start_date, end_date)
    by_reason = (
        q.with_entities(ProductReturn.reason, func.count(ProductReturn.id), func.sum(ProductReturn.total))
        .group_by(ProductReturn.reason)
        .all()
    )
    return {
        "total_returns": sum(c for _, c, _ in by_reason),
        "total_amount": money_float(sum((t or 0 for _, _, t in by_reason), 0)),
        "by_reason": [{"reason": r, "count": c, "total": money_float(t or 0)} for r, c, t in by_reason],
    }


@router.get("/{return_id}")
def get_return(return_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return return_out(svc.get_return(db, return_id))


@router.delete("/{return_id}")
def delete_return(return_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    svc.delete_return(db, return_id, user_id=sub)
    db.commit()
    return {"ok": True}
