from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional

from zora.models.core import MoveType

class WarehouseIn(BaseModel):
    name: str = Field(min_length=1)
    address: Optional[str] = None

class PresentationIn(BaseModel):
    id: Optional[str] = None  # set when updating an existing presentation
    name: str
    quantity: Decimal = Field(gt=0)
    price: Decimal = Field(ge=0)
    price_san_alas: Optional[Decimal] = Field(default=None, ge=0)
    price_employees: Optional[Decimal] = Field(default=None, ge=0)
    barcode: Optional[str] = None
    sort_order: int = 0
    is_default: bool = False

class ProductIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    cost: Decimal = Field(default=Decimal("0"), ge=0)
    default_price: Decimal = Field(ge=0)
    price_san_alas: Optional[Decimal] = Field(default=None, ge=0)
    price_employees: Optional[Decimal] = Field(default=None, ge=0)
    base_unit: str = "unit"
    base_stock: Decimal = Field(default=Decimal("0"), ge=0)
    min_stock: Decimal = Field(default=Decimal("0"), ge=0)
    warehouse_id: Optional[str] = None
    presentations: List[PresentationIn] = []

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    cost: Optional[Decimal] = Field(default=None, ge=0)
    default_price: Optional[Decimal] = Field(default=None, ge=0)
    price_san_alas: Optional[Decimal] = Field(default=None, ge=0)
    price_employees: Optional[Decimal] = Field(default=None, ge=0)
    base_unit: Optional[str] = None
    min_stock: Optional[Decimal] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    presentations: Optional[List[PresentationIn]] = None

class AddStockIn(BaseModel):
    quantity: Decimal = Field(gt=0)
    presentation_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    unit_cost: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None

class InventoryMovementIn(BaseModel):
    product_id: str
    type: MoveType
    quantity: Decimal = Field(ge=0)
    warehouse_id: Optional[str] = None
    notes: Optional[str] = None
