from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional

class PurchaseLineIn(BaseModel):
    product_id: str
    presentation_id: Optional[str] = None
    quantity: Decimal = Field(gt=0)
    unit_cost: Decimal = Field(ge=0)  # per presentation pack when one is given

class PurchaseIn(BaseModel):
    warehouse_id: Optional[str] = None
    supplier_name: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    items: List[PurchaseLineIn] = Field(min_length=1)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
