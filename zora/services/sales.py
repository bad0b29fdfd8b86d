from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.models.common import money
from zora.models.core import (
    CashRef, MoveType, PaymentMethod, PriceSegment, ProductReturn, Sale, SaleItem,
    SaleStatus, StockRef,
)
from zora.services import cash
from zora.services.errors import NotFound
from zora.services.inventory import Line, apply_movement, check_stock, get_product, resolve_line
from zora.util.audit import log_audit
from zora.util.logs import get_logger

log = get_logger("zora.sales")


def next_number(db: Session, column) -> int:
    return (db.query(func.max(column)).scalar() or 0) + 1


def get_sale(db: Session, sale_id: str) -> Sale:
    s = db.get(Sale, sale_id)
    if not s:
        raise NotFound("sale not found")
    return s


def sale_items(db: Session, sale_id: str) -> list[SaleItem]:
    return db.query(SaleItem).filter(SaleItem.sale_id == sale_id).order_by(SaleItem.created_at, SaleItem.id).all()


def add_items(db: Session, sale: Sale, lines: list[Line], decrement: bool, user_id: str | None) -> None:
    for ln in lines:
        db.add(SaleItem(
            sale_id=sale.id, product_id=ln.product.id,
            presentation_id=ln.presentation.id if ln.presentation else None,
            quantity=ln.quantity, base_quantity=ln.base_quantity,
            unit_price=ln.unit_price, unit_cost=money(ln.product.cost), subtotal=ln.subtotal,
        ))
        if decrement:
            apply_movement(
                db, ln.product, sale.warehouse_id, MoveType.OUT, ln.base_quantity,
                StockRef.SALE, sale.id, notes=f"sale #{sale.sale_number}", user_id=user_id,
            )
    db.flush()


def create_sale(
    db: Session,
    *,
    items: list,
    warehouse_id: str | None = None,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    price_segment: PriceSegment = PriceSegment.PUBLIC,
    delivery_fee=0,
    cash_received=None,
    customer_name: str | None = None,
    notes: str | None = None,
    user_id: str | None = None,
) -> Sale:
    """Ring up a sale: stock out, ledger rows, and for cash a drawer IN."""
    if payment_method == PaymentMethod.CREDIT:
        raise ValueError("credit sales must be registered as fiado orders")
    if not items:
        raise ValueError("sale must have at least one item")
    wh = cash.get_warehouse(db, warehouse_id)

    lines = [
        resolve_line(db, it.product_id, it.quantity, price_segment,
                     presentation_id=it.presentation_id, unit_price=it.unit_price)
        for it in items
    ]
    check_stock(lines)

    fee = money(delivery_fee)
    if fee < 0:
        raise ValueError("delivery fee cannot be negative")
    subtotal = money(sum((ln.subtotal for ln in lines), Decimal("0")))
    total = subtotal + fee

    change = None
    if cash_received is not None:
        cash_received = money(cash_received)
        if payment_method == PaymentMethod.CASH:
            if cash_received < total:
                raise ValueError("cash received is less than the sale total")
            change = cash_received - total

    session = cash.get_open_session(db, wh.id)
    sale = Sale(
        sale_number=next_number(db, Sale.sale_number),
        warehouse_id=wh.id, user_id=user_id,
        cash_session_id=session.id if session else None,
        subtotal=subtotal, delivery_fee=fee, total=total,
        payment_method=payment_method, price_segment=price_segment,
        cash_received=cash_received, change=change,
        customer_name=customer_name, notes=notes,
        status=SaleStatus.COMPLETED,
    )
    db.add(sale)
    db.flush()
    add_items(db, sale, lines, decrement=True, user_id=user_id)

    if payment_method == PaymentMethod.CASH and total > 0:
        cash.record_movement(db, wh.id, MoveType.IN, total, CashRef.SALE, sale.id,
                             notes=f"sale #{sale.sale_number}", user_id=user_id)
    log.info("sale #%s created: total=%s method=%s", sale.sale_number, total, payment_method.value)
    return sale


def delete_sale(db: Session, sale_id: str, user_id: str | None, reason: str | None = None) -> Sale:
    """Void a sale: put its stock back and undo its drawer IN.

    The row is kept as CANCELLED so sale numbers never get reused.
    """
    sale = get_sale(db, sale_id)
    if sale.status == SaleStatus.CANCELLED:
        raise ValueError("sale is already cancelled")
    if sale.order_id:
        raise ValueError("sale settles a fiado order and cannot be deleted")
    if db.query(ProductReturn).filter(ProductReturn.sale_id == sale.id).count():
        raise ValueError("sale has returns; delete them first")

    for it in sale_items(db, sale.id):
        apply_movement(
            db, get_product(db, it.product_id), sale.warehouse_id, MoveType.IN, it.base_quantity,
            StockRef.SALE_DELETE, sale.id, notes=f"sale #{sale.sale_number} deleted", user_id=user_id,
        )
    cash.reverse_movements(db, CashRef.SALE, sale.id, user_id=user_id)

    before = {"status": sale.status.value, "total": sale.total}
    sale.status = SaleStatus.CANCELLED
    log_audit(db, user_id, "sale", sale.id, "DELETE", before=before,
              after={"status": sale.status.value}, reason=reason)
    db.flush()
    log.info("sale #%s deleted", sale.sale_number)
    return sale
