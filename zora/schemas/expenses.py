from datetime import date
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Optional

from zora.models.core import Business, LoanType, PaymentMethod

class CategoryIn(BaseModel):
    name: str = Field(min_length=1)
    business: Business
    icon: Optional[str] = None
    color: str = "#3B82F6"

class ExpenseIn(BaseModel):
    expense_date: Optional[date] = None
    business: Business
    category: str = Field(min_length=1)
    subcategory: Optional[str] = None
    supplier_name: Optional[str] = None
    description: Optional[str] = None
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    invoice_number: Optional[str] = None
    is_recurring: bool = False
    notes: Optional[str] = None
    warehouse_id: Optional[str] = None

class ExpenseUpdate(BaseModel):
    expense_date: Optional[date] = None
    business: Optional[Business] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    supplier_name: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    payment_method: Optional[PaymentMethod] = None
    invoice_number: Optional[str] = None
    is_recurring: Optional[bool] = None
    notes: Optional[str] = None

class LoanIn(BaseModel):
    type: LoanType
    borrower_name: str = Field(min_length=1)
    borrower_phone: Optional[str] = None
    borrower_document: Optional[str] = None
    business: Business = Business.DISTRIBUTOR
    amount: Decimal = Field(gt=0)
    interest_rate: Decimal = Field(default=Decimal("0"), ge=0)
    disbursement_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    warehouse_id: Optional[str] = None

class LoanPaymentIn(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None
