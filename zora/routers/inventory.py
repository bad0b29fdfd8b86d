from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import InventoryMovement, MoveType, StockRef
from zora.schemas.catalog import InventoryMovementIn
from zora.services import cash
from zora.services.inventory import apply_movement, get_product
from zora.util.dates import apply_range
from zora.util.paging import paginate
from zora.util.serialize import inventory_movement_out

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/movements")
def create_movement(body: InventoryMovementIn, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    """Manual stock correction: IN/OUT by a delta, ADJUST to an absolute level."""
    p = get_product(db, body.product_id)
    wh = cash.get_warehouse(db, body.warehouse_id)
    mv = apply_movement(db, p, wh.id, body.type, body.quantity, StockRef.MANUAL,
                        notes=body.notes, user_id=sub)
    db.commit()
    db.refresh(mv)
    return inventory_movement_out(mv)


@router.get("/movements")
def list_movements(
    product_id: str | None = None,
    type: MoveType | None = None,
    reference_type: StockRef | None = None,
    reference_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(InventoryMovement)
    if product_id:
        q = q.filter(InventoryMovement.product_id == product_id)
    if type:
        q = q.filter(InventoryMovement.type == type)
    if reference_type:
        q = q.filter(InventoryMovement.reference_type == reference_type)
    if reference_id:
        q = q.filter(InventoryMovement.reference_id == reference_id)
    q = apply_range(q, InventoryMovement.created_at, start_date, end_date)
    rows, total, page, size = paginate(
        q.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id), page, size)
    return {"items": [inventory_movement_out(m) for m in rows], "total": total, "page": page, "size": size}
