from __future__ import annotations

import re

from sqlalchemy.orm import Session

from zora.models.common import money
from zora.models.core import Business, CashRef, Expense, ExpenseCategory, MoveType, PaymentMethod
from zora.services import cash
from zora.services.errors import NotFound
from zora.util.audit import log_audit
from zora.util.dates import local_today
from zora.util.logs import get_logger

log = get_logger("zora.expenses")

INVOICE_PREFIX = {
    Business.DISTRIBUTOR: "GD",
    Business.SAN_ALAS: "GS",
    Business.EMPLOYEES: "GE",
}

# (key, name, icon, color)
DEFAULT_CATEGORIES = {
    Business.DISTRIBUTOR: [
        ("utilities", "Utilities", "bolt", "#F59E0B"),
        ("rent", "Rent", "home", "#8B5CF6"),
        ("payroll", "Payroll", "people", "#3B82F6"),
        ("freight", "Transport/Freight", "local_shipping", "#10B981"),
        ("maintenance", "Maintenance", "build", "#6366F1"),
        ("taxes", "Taxes", "account_balance", "#EF4444"),
        ("insurance", "Insurance", "security", "#14B8A6"),
        ("supplies", "Supplies/Stationery", "inventory_2", "#EC4899"),
        ("marketing", "Advertising/Marketing", "campaign", "#F97316"),
        ("bank", "Bank fees", "credit_card", "#64748B"),
        ("other", "Other", "more_horiz", "#94A3B8"),
    ],
    Business.SAN_ALAS: [
        ("utilities", "Utilities", "bolt", "#F59E0B"),
        ("rent", "Rent", "home", "#8B5CF6"),
        ("payroll", "Payroll", "people", "#3B82F6"),
        ("ingredients", "Ingredients/Raw materials", "restaurant", "#10B981"),
        ("maintenance", "Maintenance", "build", "#6366F1"),
        ("gas", "Gas", "local_fire_department", "#EF4444"),
        ("cleaning", "Cleaning", "cleaning_services", "#14B8A6"),
        ("taxes", "Taxes", "account_balance", "#EC4899"),
        ("other", "Other", "more_horiz", "#94A3B8"),
    ],
    Business.EMPLOYEES: [
        ("advance", "Salary advance", "payments", "#3B82F6"),
        ("loan", "Personal loan", "account_balance_wallet", "#10B981"),
        ("bonus", "Bonus", "card_giftcard", "#F59E0B"),
        ("uniforms", "Uniforms", "checkroom", "#8B5CF6"),
        ("transport", "Transport allowance", "directions_bus", "#14B8A6"),
        ("meals", "Meals", "restaurant", "#EC4899"),
        ("health", "Health/Medicine", "local_hospital", "#EF4444"),
        ("other", "Other", "more_horiz", "#94A3B8"),
    ],
}


def list_categories(db: Session) -> dict:
    """Active categories per business; a business with none gets the built-in list."""
    rows = db.query(ExpenseCategory).filter(ExpenseCategory.is_active.is_(True)) \
             .order_by(ExpenseCategory.name).all()
    out = {}
    for b in Business:
        mine = [{"id": c.id, "name": c.name, "icon": c.icon or "receipt", "color": c.color}
                for c in rows if c.business == b]
        if not mine:
            mine = [{"id": k, "name": n, "icon": i, "color": c} for k, n, i, c in DEFAULT_CATEGORIES[b]]
        out[b.value] = mine
    return out


def next_invoice_number(db: Session, business: Business) -> str:
    prefix = INVOICE_PREFIX[business]
    last = 0
    for (num,) in db.query(Expense.invoice_number).filter(Expense.invoice_number.like(f"{prefix}-%")):
        m = re.search(r"(\d+)$", num or "")
        if m:
            last = max(last, int(m.group(1)))
    return f"{prefix}-{last + 1:05d}"


def get_expense(db: Session, expense_id: str) -> Expense:
    e = db.get(Expense, expense_id)
    if not e:
        raise NotFound("expense not found")
    return e


def create_expense(db: Session, data: dict, user_id: str | None = None) -> Expense:
    amount = money(data["amount"])
    if amount <= 0:
        raise ValueError("amount must be greater than zero")
    business = data["business"]
    wh = cash.get_warehouse(db, data.get("warehouse_id"))

    invoice = data.get("invoice_number") or next_invoice_number(db, business)
    if db.query(Expense).filter(Expense.invoice_number == invoice).first():
        raise ValueError(f"invoice number {invoice} already exists")

    e = Expense(
        expense_date=data.get("expense_date") or local_today(),
        business=business,
        category=data["category"],
        subcategory=data.get("subcategory"),
        supplier_name=data.get("supplier_name"),
        description=data.get("description"),
        amount=amount,
        payment_method=data.get("payment_method") or PaymentMethod.CASH,
        invoice_number=invoice,
        is_recurring=bool(data.get("is_recurring")),
        notes=data.get("notes"),
        warehouse_id=wh.id,
        user_id=user_id,
    )
    db.add(e)
    db.flush()
    if e.payment_method == PaymentMethod.CASH:
        cash.record_movement(db, wh.id, MoveType.OUT, amount, CashRef.EXPENSE, e.id,
                             notes=f"expense {invoice}: {e.category}", user_id=user_id)
    log.info("expense %s: %s %s", invoice, e.category, amount)
    return e


def update_expense(db: Session, expense_id: str, changes: dict, user_id: str | None = None) -> Expense:
    """Edit an expense; a change of amount or payment method rewrites its drawer entry."""
    e = get_expense(db, expense_id)
    before = {"amount": e.amount, "payment_method": e.payment_method.value}
    if "amount" in changes and changes["amount"] is not None:
        changes["amount"] = money(changes["amount"])
        if changes["amount"] <= 0:
            raise ValueError("amount must be greater than zero")
    inv = changes.get("invoice_number")
    if inv and inv != e.invoice_number and db.query(Expense).filter(Expense.invoice_number == inv).first():
        raise ValueError(f"invoice number {inv} already exists")

    for k, v in changes.items():
        if v is not None and k != "warehouse_id":
            setattr(e, k, v)

    if e.amount != before["amount"] or e.payment_method.value != before["payment_method"]:
        cash.reverse_movements(db, CashRef.EXPENSE, e.id, user_id=user_id)
        if e.payment_method == PaymentMethod.CASH:
            cash.record_movement(db, e.warehouse_id, MoveType.OUT, e.amount, CashRef.EXPENSE, e.id,
                                 notes=f"expense {e.invoice_number}: {e.category}", user_id=user_id)
        log_audit(db, user_id, "expense", e.id, "UPDATE", before=before,
                  after={"amount": e.amount, "payment_method": e.payment_method.value})
    db.flush()
    return e


def delete_expense(db: Session, expense_id: str, user_id: str | None = None) -> None:
    e = get_expense(db, expense_id)
    cash.reverse_movements(db, CashRef.EXPENSE, e.id, user_id=user_id)
    log_audit(db, user_id, "expense", e.id, "DELETE",
              before={"invoice_number": e.invoice_number, "amount": e.amount})
    db.delete(e)
    db.flush()
    log.info("expense %s deleted", e.invoice_number)
