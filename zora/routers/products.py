from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import MoveType, Product, ProductPresentation, StockRef
from zora.schemas.catalog import AddStockIn, PresentationIn, ProductIn, ProductUpdate
from zora.services import cash
from zora.services.inventory import apply_movement, get_product, low_stock_count, q3, stock_display
from zora.util.paging import paginate
from zora.util.serialize import inventory_movement_out, product_out

router = APIRouter(prefix="/products", tags=["products"])


def _presentations(db: Session, product_id: str) -> list[ProductPresentation]:
    return (
        db.query(ProductPresentation)
        .filter(ProductPresentation.product_id == product_id, ProductPresentation.is_active.is_(True))
        .order_by(ProductPresentation.sort_order, ProductPresentation.quantity)
        .all()
    )


def _full(db: Session, p: Product) -> dict:
    pres = _presentations(db, p.id)
    return product_out(p, pres, stock_display(p.base_stock, p.base_unit, pres))


def _check_barcode(db: Session, code: str | None, product_id: str | None = None,
                   presentation_id: str | None = None) -> None:
    if not code:
        return
    p = db.query(Product).filter(Product.barcode == code).first()
    if p and p.id != product_id:
        raise HTTPException(400, detail=f"Barcode {code} already belongs to {p.name}")
    pr = db.query(ProductPresentation).filter(ProductPresentation.barcode == code).first()
    if pr and pr.id != presentation_id:
        raise HTTPException(400, detail=f"Barcode {code} already belongs to a presentation")


def _save_presentations(db: Session, product: Product, items: list[PresentationIn]) -> None:
    keep = set()
    for body in items:
        _check_barcode(db, body.barcode, presentation_id=body.id)
        pres = db.get(ProductPresentation, body.id) if body.id else None
        if pres and pres.product_id != product.id:
            raise HTTPException(400, detail="presentation belongs to another product")
        if not pres:
            pres = ProductPresentation(product_id=product.id)
            db.add(pres)
        for k, v in body.model_dump(exclude={"id"}).items():
            setattr(pres, k, v)
        pres.is_active = True
        db.flush()
        keep.add(pres.id)
    # presentations left out are retired, not deleted: old sales still point at them
    for pres in _presentations(db, product.id):
        if pres.id not in keep:
            pres.is_active = False
            pres.barcode = None


@router.get("/")
def list_products(
    search: str | None = None,
    low_stock: bool = False,
    include_inactive: bool = False,
    page: int = 1,
    size: int = 50,
    db: Session = Depends(get_db),
    sub: str = Depends(require_auth),
):
    q = db.query(Product)
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if search:
        like = f"%{search}%"
        q = q.filter(or_(Product.name.ilike(like), Product.sku.ilike(like), Product.barcode == search))
    if low_stock:
        q = q.filter(Product.base_stock <= Product.min_stock)
    rows, total, page, size = paginate(q.order_by(Product.name), page, size)
    return {
        "items": [_full(db, p) for p in rows],
        "total": total, "page": page, "size": size,
        "low_stock_count": low_stock_count(db),
    }


@router.get("/barcode/{code}")
def by_barcode(code: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    """Scanner lookup: a product barcode or a presentation barcode."""
    p = db.query(Product).filter(Product.barcode == code, Product.is_active.is_(True)).first()
    if p:
        return {"product": _full(db, p), "presentation_id": None}
    pres = db.query(ProductPresentation).filter(
        ProductPresentation.barcode == code, ProductPresentation.is_active.is_(True)).first()
    if pres:
        p = db.get(Product, pres.product_id)
        if p and p.is_active:
            return {"product": _full(db, p), "presentation_id": pres.id}
    raise HTTPException(404, detail="product not found")


@router.get("/{product_id}")
def get_one(product_id: str, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    p = db.get(Product, product_id)
    if not p:
        raise HTTPException(404, detail="product not found")
    return _full(db, p)


@router.post("/")
def create_product(body: ProductIn, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    _check_barcode(db, body.barcode)
    p = Product(**body.model_dump(exclude={"presentations", "base_stock", "warehouse_id"}))
    p.base_stock = 0
    db.add(p)
    db.flush()
    _save_presentations(db, p, body.presentations)
    if body.base_stock > 0:
        wh = cash.get_warehouse(db, body.warehouse_id)
        apply_movement(db, p, wh.id, MoveType.IN, body.base_stock, StockRef.MANUAL,
                       notes="initial stock", user_id=sub, unit_cost=body.cost)
    db.commit()
    db.refresh(p)
    return _full(db, p)


@router.put("/{product_id}")
def update_product(product_id: str, body: ProductUpdate, db: Session = Depends(get_db),
                   sub: str = Depends(require_admin)):
    p = db.get(Product, product_id)
    if not p:
        raise HTTPException(404, detail="product not found")
    data = body.model_dump(exclude_unset=True, exclude={"presentations"})
    if data.get("barcode"):
        _check_barcode(db, data["barcode"], product_id=p.id)
    for k, v in data.items():
        if v is not None:
            setattr(p, k, v)
    if body.presentations is not None:
        _save_presentations(db, p, body.presentations)
    db.commit()
    db.refresh(p)
    return _full(db, p)


@router.delete("/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    # soft delete: sales and ledgers keep referencing the row
    p = db.get(Product, product_id)
    if not p:
        raise HTTPException(404, detail="product not found")
    p.is_active = False
    db.commit()
    return {"ok": True}


@router.post("/{product_id}/add-stock")
def add_stock(product_id: str, body: AddStockIn, db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    p = get_product(db, product_id)
    qty = q3(body.quantity)
    note = body.notes
    if body.presentation_id:
        pres = db.get(ProductPresentation, body.presentation_id)
        if not pres or pres.product_id != p.id:
            raise HTTPException(404, detail="presentation not found")
        note = note or f"{body.quantity} x {pres.name}"
        qty = q3(qty * pres.quantity)
    wh = cash.get_warehouse(db, body.warehouse_id)
    mv = apply_movement(db, p, wh.id, MoveType.IN, qty, StockRef.MANUAL,
                        notes=note, user_id=sub, unit_cost=body.unit_cost)
    db.commit()
    db.refresh(p)
    return {"product": _full(db, p), "movement": inventory_movement_out(mv)}
