"""Cash-drawer sessions and their reconciliation.

Every drawer-affecting event writes one `CashMovement` on the warehouse's open
session.  Expected cash is never stored incrementally: it is replayed from the
session's ledger by `reconcile()`, so a closed session can always be audited.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.models.common import money, utcnow
from zora.models.core import (
    CashMovement, CashRef, CashSession, Expense, Loan, MoveType, Order,
    PaymentMethod, ProductReturn, Sale, SaleItem, SaleStatus, User, Warehouse,
)
from zora.services.errors import NotFound
from zora.util.audit import log_audit
from zora.util.logs import get_logger
from zora.util.security import verify_pw

log = get_logger("zora.cash")

BALANCED = "BALANCED"
OVER = "OVER"
SHORT = "SHORT"

# compensating entry written when the original movement sits in a closed session
_REVERSAL = {
    CashRef.SALE: CashRef.SALE_REVERSAL,
    CashRef.RETURN: CashRef.RETURN_REVERSAL,
    CashRef.EXPENSE: CashRef.EXPENSE_REVERSAL,
}


@dataclass
class Reconciliation:
    opening: Decimal
    cash_sales: Decimal
    fiado_payments: Decimal
    other_in: Decimal
    cash_out: Decimal
    expected: Decimal
    counted: Decimal | None = None
    difference: Decimal | None = None
    status: str | None = None

    @property
    def income(self) -> Decimal:
        return self.cash_sales + self.fiado_payments + self.other_in

    def as_dict(self) -> dict:
        return {
            "opening": float(self.opening),
            "cash_sales": float(self.cash_sales),
            "fiado_payments": float(self.fiado_payments),
            "other_in": float(self.other_in),
            "income": float(self.income),
            "outflow": float(self.cash_out),
            "expected": float(self.expected),
            "counted": float(self.counted) if self.counted is not None else None,
            "difference": float(self.difference) if self.difference is not None else None,
            "status": self.status,
        }


def reconcile(opening, movements: Iterable, counted=None) -> Reconciliation:
    """Replay a session ledger.

    expected = opening + cash sales + collected fiado payments + other cash-ins - cash-outs

    `movements` only needs `.type`, `.amount` and `.reference_type`.  The sum is
    done in Decimal so the result is exact regardless of replay order.
    """
    opening = money(opening)
    sales = fiados = other = out = Decimal("0")
    for m in movements:
        amount = money(m.amount)
        if m.type == MoveType.OUT:
            out += amount
        elif m.reference_type == CashRef.SALE:
            sales += amount
        elif m.reference_type == CashRef.ORDER_PAYMENT:
            fiados += amount
        else:
            other += amount
    expected = opening + sales + fiados + other - out
    r = Reconciliation(opening, sales, fiados, other, out, expected)
    if counted is not None:
        r.counted = money(counted)
        r.difference = r.counted - expected
        if r.difference == 0:
            r.status = BALANCED
        elif r.difference > 0:
            r.status = OVER
        else:
            r.status = SHORT
    return r


# ── session lookup ──────────────────────────────────────────────────────────

def get_warehouse(db: Session, warehouse_id: str | None) -> Warehouse:
    """Resolve a warehouse; no id means the first (default) one."""
    if warehouse_id:
        wh = db.get(Warehouse, warehouse_id)
    else:
        wh = db.query(Warehouse).order_by(Warehouse.created_at).first()
    if not wh:
        raise NotFound("warehouse not found")
    return wh


def get_open_session(db: Session, warehouse_id: str) -> CashSession | None:
    return (
        db.query(CashSession)
        .filter(CashSession.warehouse_id == warehouse_id, CashSession.closed_at.is_(None))
        .first()
    )


def session_movements(db: Session, session_id: str) -> list[CashMovement]:
    return (
        db.query(CashMovement)
        .filter(CashMovement.session_id == session_id)
        .order_by(CashMovement.created_at, CashMovement.id)
        .all()
    )


def current_totals(db: Session, session: CashSession) -> Reconciliation:
    return reconcile(session.opening_amount, session_movements(db, session.id))


# ── ledger writes ───────────────────────────────────────────────────────────

def record_movement(
    db: Session,
    warehouse_id: str,
    type: MoveType,
    amount,
    reference_type: CashRef,
    reference_id: str | None = None,
    notes: str | None = None,
    user_id: str | None = None,
    required: bool = False,
) -> CashMovement | None:
    """Append a movement to the warehouse's open session.

    Without an open session the drawer is not touched and None is returned,
    unless `required` is set, in which case it is an error.
    """
    amount = money(amount)
    if amount <= 0:
        raise ValueError("amount must be greater than zero")
    if type not in (MoveType.IN, MoveType.OUT):
        raise ValueError("cash movements are IN or OUT")
    session = get_open_session(db, warehouse_id)
    if not session:
        if required:
            raise ValueError("no open cash session for this warehouse")
        log.info("no open cash session in %s, skipping %s %s", warehouse_id, reference_type.value, amount)
        return None
    m = CashMovement(
        session_id=session.id, type=type, amount=amount,
        reference_type=reference_type, reference_id=reference_id,
        notes=notes, user_id=user_id,
    )
    db.add(m)
    db.flush()
    return m


def reverse_movements(
    db: Session,
    reference_type: CashRef,
    reference_id: str,
    user_id: str | None = None,
    notes: str | None = None,
) -> int:
    """Undo the drawer effect of an event.

    Movements still in an open session are deleted, so the session looks as if
    the event never happened.  Movements already closed out are left alone;
    whatever part of them is not yet compensated gets one opposite movement on
    the warehouse's currently open session.  Calling this again for the same
    event writes nothing new.  Returns how many movements were reversed.
    """
    reversal_ref = _REVERSAL.get(reference_type, CashRef.MANUAL)
    rows = (
        db.query(CashMovement)
        .filter(CashMovement.reference_type == reference_type, CashMovement.reference_id == reference_id)
        .all()
    )
    outstanding = Decimal("0")  # signed: IN positive
    warehouse_id = None
    reversed_count = 0
    for m in rows:
        session = db.get(CashSession, m.session_id)
        if session.closed_at is None:
            db.delete(m)
            reversed_count += 1
            continue
        outstanding += _signed(m)
        warehouse_id = session.warehouse_id

    if outstanding:
        compensations = (
            db.query(CashMovement)
            .filter(CashMovement.reference_type == reversal_ref, CashMovement.reference_id == reference_id)
            .all()
        )
        outstanding += sum((_signed(m) for m in compensations), Decimal("0"))

    if outstanding:
        record_movement(
            db, warehouse_id, MoveType.OUT if outstanding > 0 else MoveType.IN, abs(outstanding),
            reversal_ref, reference_id,
            notes=notes or f"reversal of {reference_type.value} from closed session",
            user_id=user_id, required=True,
        )
        reversed_count += 1
    db.flush()
    if reversed_count:
        log.info("reversed %d cash movement(s) for %s %s", reversed_count, reference_type.value, reference_id)
    return reversed_count


def _signed(m: CashMovement) -> Decimal:
    amount = money(m.amount)
    return amount if m.type == MoveType.IN else -amount


# ── lifecycle ───────────────────────────────────────────────────────────────

def open_session(db: Session, warehouse_id: str | None, opening_amount, user_id: str | None,
                 notes: str | None = None) -> CashSession:
    wh = get_warehouse(db, warehouse_id)
    if get_open_session(db, wh.id):
        raise ValueError("a cash session is already open for this warehouse")
    opening = money(opening_amount)
    if opening < 0:
        raise ValueError("opening amount cannot be negative")
    s = CashSession(
        warehouse_id=wh.id, opened_at=utcnow(), opened_by_user_id=user_id,
        opening_amount=opening, notes=notes,
    )
    db.add(s)
    db.flush()
    log.info("cash session %s opened in %s with %s", s.id, wh.name, opening)
    return s


def session_summary(db: Session, session: CashSession) -> dict:
    """Sales/fiado/expense figures for a session; used by close and closure detail."""
    sales = db.query(Sale).filter(Sale.cash_session_id == session.id).all()
    counted_sales = [s for s in sales if s.status != SaleStatus.CANCELLED]
    total_sales = sum((s.total for s in counted_sales), Decimal("0"))
    total_cash = sum((s.total for s in counted_sales if s.payment_method == PaymentMethod.CASH), Decimal("0"))
    total_transfer = sum((s.total for s in counted_sales if s.payment_method == PaymentMethod.TRANSFER), Decimal("0"))

    cost = Decimal("0")
    sale_ids = [s.id for s in counted_sales]
    if sale_ids:
        cost = db.query(func.coalesce(func.sum(SaleItem.unit_cost * SaleItem.base_quantity), 0)) \
                 .filter(SaleItem.sale_id.in_(sale_ids)).scalar()
        cost = money(cost)

    fiados = db.query(Order).filter(Order.cash_session_id == session.id).all()
    moves = session_movements(db, session.id)

    def _sum(ref: CashRef) -> Decimal:
        return sum((m.amount for m in moves if m.reference_type == ref), Decimal("0"))

    return {
        "sales_count": len(counted_sales),
        "total_sales": money(total_sales),
        "total_cash": money(total_cash),
        "total_transfer": money(total_transfer),
        "sales_cost": cost,
        "gross_profit": money(total_sales - cost),
        "fiados_count": len(fiados),
        "total_fiados": money(sum((o.total for o in fiados), Decimal("0"))),
        "fiados_collected": money(_sum(CashRef.ORDER_PAYMENT)),
        "expenses": money(_sum(CashRef.EXPENSE)),
        "returns": money(_sum(CashRef.RETURN)),
        "loans": money(_sum(CashRef.LOAN)),
        "loan_payments": money(_sum(CashRef.LOAN_PAYMENT)),
    }


def close_session(db: Session, warehouse_id: str | None, counted, username: str, password: str,
                  notes: str | None = None) -> tuple[CashSession, Reconciliation, dict]:
    """Close the open session after the cashier re-enters their credentials.

    Raises PermissionError on bad credentials; the router maps it to 401.
    """
    user = db.query(User).filter(User.username == username).first()
    if not user or not user.active or not verify_pw(user.pass_hash, password):
        raise PermissionError("invalid credentials")

    wh = get_warehouse(db, warehouse_id)
    session = get_open_session(db, wh.id)
    if not session:
        raise ValueError("no open cash session for this warehouse")

    counted = money(counted)
    if counted < 0:
        raise ValueError("counted amount cannot be negative")

    rec = reconcile(session.opening_amount, session_movements(db, session.id), counted)
    summary = session_summary(db, session)

    session.closed_at = utcnow()
    session.closed_by_user_id = user.id
    session.closing_amount = counted
    session.expected_cash = rec.expected
    session.cash_difference = rec.difference
    session.total_sales = summary["total_sales"]
    session.total_cash = summary["total_cash"]
    session.total_transfer = summary["total_transfer"]
    session.total_fiados = summary["total_fiados"]
    session.sales_count = summary["sales_count"]
    if notes:
        session.notes = f"{session.notes}\n{notes}" if session.notes else notes

    log_audit(db, user.id, "cash_session", session.id, "CLOSE",
              after={"expected": rec.expected, "counted": counted, "difference": rec.difference})
    db.flush()
    log.info("cash session %s closed: expected=%s counted=%s diff=%s (%s)",
             session.id, rec.expected, counted, rec.difference, rec.status)
    return session, rec, summary


def closure_detail(db: Session, session: CashSession) -> dict:
    """Sales, fiados and ledger rows that belong to a session."""
    sales = db.query(Sale).filter(Sale.cash_session_id == session.id).order_by(Sale.sale_number).all()
    fiados = db.query(Order).filter(Order.cash_session_id == session.id).order_by(Order.order_number).all()
    moves = session_movements(db, session.id)

    def _refs(model, ref: CashRef) -> list:
        ids = [m.reference_id for m in moves if m.reference_type == ref and m.reference_id]
        return db.query(model).filter(model.id.in_(ids)).all() if ids else []

    return {
        "sales": sales,
        "fiados": fiados,
        "returns": _refs(ProductReturn, CashRef.RETURN),
        "expenses": _refs(Expense, CashRef.EXPENSE),
        "loans": _refs(Loan, CashRef.LOAN),
        "movements": moves,
    }
