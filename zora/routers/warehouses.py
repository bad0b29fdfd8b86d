from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from zora.db import get_db
from zora.deps import require_admin, require_auth
from zora.models.core import Warehouse
from zora.schemas.catalog import WarehouseIn

router = APIRouter(prefix="/warehouses", tags=["warehouses"])


def _out(w: Warehouse) -> dict:
    return {"id": w.id, "name": w.name, "address": w.address, "is_active": bool(w.is_active)}


@router.get("/")
def list_warehouses(db: Session = Depends(get_db), sub: str = Depends(require_auth)):
    return [_out(w) for w in db.query(Warehouse).order_by(Warehouse.created_at).all()]


@router.post("/")
def create_warehouse(body: WarehouseIn, db: Session = Depends(get_db), sub: str = Depends(require_admin)):
    if db.query(Warehouse).filter(Warehouse.name == body.name).first():
        raise HTTPException(409, detail="Warehouse already exists")
    w = Warehouse(name=body.name, address=body.address)
    db.add(w); db.commit(); db.refresh(w)
    return _out(w)
