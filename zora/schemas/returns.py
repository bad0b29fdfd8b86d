from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional

from zora.models.core import PaymentMethod

class ReturnIn(BaseModel):
    product_id: str
    quantity: Decimal = Field(gt=0)
    reason: str = Field(min_length=1)
    sale_id: Optional[str] = None
    presentation_id: Optional[str] = None
    unit_price: Optional[Decimal] = Field(default=None, ge=0)  # omitted: price on the sale
    refund_method: PaymentMethod = PaymentMethod.CASH
    warehouse_id: Optional[str] = None
    notes: Optional[str] = None
