from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Literal, Optional

class OpenSessionIn(BaseModel):
    warehouse_id: Optional[str] = None
    opening_amount: Decimal = Field(default=Decimal("0"), ge=0)
    notes: Optional[str] = None

class CloseSessionIn(BaseModel):
    warehouse_id: Optional[str] = None
    closing_amount: Decimal = Field(ge=0)
    username: str
    password: str
    notes: Optional[str] = None

class CashMovementIn(BaseModel):
    warehouse_id: Optional[str] = None
    type: Literal["IN", "OUT"]
    amount: Decimal = Field(gt=0)
    notes: Optional[str] = None
