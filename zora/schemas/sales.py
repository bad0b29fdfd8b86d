from datetime import date
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional

from zora.models.core import PaymentMethod, PriceSegment

class LineIn(BaseModel):
    product_id: str
    presentation_id: Optional[str] = None
    quantity: Decimal = Field(gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)  # omitted: price from segment

class SaleIn(BaseModel):
    warehouse_id: Optional[str] = None
    items: List[LineIn] = Field(min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CASH
    price_segment: PriceSegment = PriceSegment.PUBLIC
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)
    cash_received: Optional[Decimal] = Field(default=None, ge=0)
    customer_name: Optional[str] = None
    notes: Optional[str] = None

class OrderIn(BaseModel):
    customer_name: str = Field(min_length=1)
    customer_phone: Optional[str] = None
    warehouse_id: Optional[str] = None
    items: List[LineIn] = Field(min_length=1)
    price_segment: PriceSegment = PriceSegment.PUBLIC
    due_date: Optional[date] = None
    notes: Optional[str] = None

class OrderPayIn(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH

class ReasonIn(BaseModel):
    reason: Optional[str] = None
