from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from zora.models.common import money
from zora.models.core import CashRef, Loan, LoanPayment, LoanStatus, MoveType, PaymentMethod
from zora.services import cash
from zora.services.errors import NotFound
from zora.util.dates import local_today
from zora.util.logs import get_logger

log = get_logger("zora.loans")


def get_loan(db: Session, loan_id: str) -> Loan:
    loan = db.get(Loan, loan_id)
    if not loan:
        raise NotFound("loan not found")
    return loan


def loan_payments(db: Session, loan_id: str) -> list[LoanPayment]:
    return db.query(LoanPayment).filter(LoanPayment.loan_id == loan_id).order_by(LoanPayment.created_at).all()


def create_loan(db: Session, data: dict, user_id: str | None = None) -> Loan:
    amount = money(data["amount"])
    if amount <= 0:
        raise ValueError("amount must be greater than zero")
    rate = Decimal(str(data.get("interest_rate") or 0))
    if rate < 0:
        raise ValueError("interest rate cannot be negative")
    total = money(amount * (1 + rate / 100))
    wh = cash.get_warehouse(db, data.get("warehouse_id"))

    loan = Loan(
        type=data["type"],
        borrower_name=data["borrower_name"],
        borrower_phone=data.get("borrower_phone"),
        borrower_document=data.get("borrower_document"),
        business=data["business"],
        amount=amount, interest_rate=rate, total_amount=total,
        paid_amount=Decimal("0"), balance=total,
        disbursement_date=data.get("disbursement_date") or local_today(),
        due_date=data.get("due_date"),
        status=LoanStatus.ACTIVE,
        notes=data.get("notes"),
        warehouse_id=wh.id, user_id=user_id,
    )
    db.add(loan)
    db.flush()
    # the principal leaves the drawer
    cash.record_movement(db, wh.id, MoveType.OUT, amount, CashRef.LOAN, loan.id,
                         notes=f"loan to {loan.borrower_name}", user_id=user_id)
    log.info("loan %s to %s: %s (total %s)", loan.id, loan.borrower_name, amount, total)
    return loan


def add_payment(db: Session, loan_id: str, amount, payment_method: PaymentMethod = PaymentMethod.CASH,
                notes: str | None = None, user_id: str | None = None) -> tuple[Loan, LoanPayment]:
    loan = get_loan(db, loan_id)
    if loan.status != LoanStatus.ACTIVE:
        raise ValueError(f"loan is {loan.status.value.lower()}")
    amount = money(amount)
    if amount <= 0:
        raise ValueError("amount must be greater than zero")
    if amount > loan.balance:
        raise ValueError(f"payment exceeds the outstanding balance of {loan.balance}")
    if payment_method == PaymentMethod.CREDIT:
        raise ValueError("loan payments are made in cash or by transfer")

    p = LoanPayment(loan_id=loan.id, amount=amount, payment_method=payment_method,
                    notes=notes, user_id=user_id)
    db.add(p)
    loan.paid_amount = money(loan.paid_amount) + amount
    loan.balance = money(loan.total_amount) - loan.paid_amount
    if loan.balance <= 0:
        loan.status = LoanStatus.PAID
    db.flush()
    if payment_method == PaymentMethod.CASH:
        cash.record_movement(db, loan.warehouse_id, MoveType.IN, amount, CashRef.LOAN_PAYMENT, p.id,
                             notes=f"loan payment: {loan.borrower_name}", user_id=user_id)
    log.info("loan %s payment %s, balance %s", loan.id, amount, loan.balance)
    return loan, p


def cancel_loan(db: Session, loan_id: str) -> Loan:
    loan = get_loan(db, loan_id)
    if loan.status != LoanStatus.ACTIVE:
        raise ValueError(f"loan is {loan.status.value.lower()}")
    loan.status = LoanStatus.CANCELLED
    db.flush()
    return loan
