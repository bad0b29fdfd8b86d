"""Fiados: goods leave on credit now, cash arrives later.

Stock goes out when the order is created.  Paying it turns it into a Sale
without touching stock again; cancelling it puts the stock back.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from zora.models.common import money, utcnow
from zora.models.core import (
    CashRef, MoveType, Order, OrderItem, OrderStatus, PaymentMethod, PriceSegment,
    ProductPresentation, Sale, SaleStatus, StockRef,
)
from zora.services import cash
from zora.services.errors import NotFound
from zora.services.inventory import Line, apply_movement, check_stock, get_product, resolve_line
from zora.services.sales import add_items, next_number
from zora.util.audit import log_audit
from zora.util.logs import get_logger

log = get_logger("zora.orders")


def get_order(db: Session, order_id: str) -> Order:
    o = db.get(Order, order_id)
    if not o:
        raise NotFound("order not found")
    return o


def order_items(db: Session, order_id: str) -> list[OrderItem]:
    return db.query(OrderItem).filter(OrderItem.order_id == order_id).order_by(OrderItem.created_at, OrderItem.id).all()


def create_order(
    db: Session,
    *,
    customer_name: str,
    items: list,
    warehouse_id: str | None = None,
    price_segment: PriceSegment = PriceSegment.PUBLIC,
    customer_phone: str | None = None,
    due_date=None,
    notes: str | None = None,
    user_id: str | None = None,
) -> Order:
    if not (customer_name or "").strip():
        raise ValueError("customer name is required")
    if not items:
        raise ValueError("order must have at least one item")
    wh = cash.get_warehouse(db, warehouse_id)

    lines = [
        resolve_line(db, it.product_id, it.quantity, price_segment,
                     presentation_id=it.presentation_id, unit_price=it.unit_price)
        for it in items
    ]
    check_stock(lines)

    session = cash.get_open_session(db, wh.id)
    order = Order(
        order_number=next_number(db, Order.order_number),
        customer_name=customer_name.strip(), customer_phone=customer_phone,
        notes=notes, due_date=due_date, warehouse_id=wh.id,
        price_segment=price_segment,
        total=money(sum((ln.subtotal for ln in lines), Decimal("0"))),
        status=OrderStatus.PENDING, user_id=user_id,
        cash_session_id=session.id if session else None,
    )
    db.add(order)
    db.flush()
    for ln in lines:
        db.add(OrderItem(
            order_id=order.id, product_id=ln.product.id, product_name=ln.product.name,
            presentation_id=ln.presentation.id if ln.presentation else None,
            presentation_name=ln.presentation.name if ln.presentation else None,
            quantity=ln.quantity, base_quantity=ln.base_quantity,
            unit_price=ln.unit_price, subtotal=ln.subtotal,
        ))
        apply_movement(
            db, ln.product, wh.id, MoveType.OUT, ln.base_quantity,
            StockRef.ORDER, order.id, notes=f"fiado #{order.order_number}", user_id=user_id,
        )
    db.flush()
    log.info("fiado #%s created for %s: total=%s", order.order_number, order.customer_name, order.total)
    return order


def _require_pending(order: Order, verb: str) -> None:
    if order.status == OrderStatus.PAID:
        raise ValueError(f"order is already paid and cannot be {verb}")
    if order.status != OrderStatus.PENDING:
        raise ValueError(f"order is {order.status.value.lower()} and cannot be {verb}")


def pay_order(db: Session, order_id: str, payment_method: PaymentMethod = PaymentMethod.CASH,
              user_id: str | None = None) -> tuple[Order, Sale]:
    order = get_order(db, order_id)
    _require_pending(order, "paid")
    if payment_method == PaymentMethod.CREDIT:
        raise ValueError("a fiado must be paid in cash or by transfer")

    items = order_items(db, order.id)
    lines = [
        Line(
            product=get_product(db, it.product_id),
            presentation=db.get(ProductPresentation, it.presentation_id) if it.presentation_id else None,
            quantity=it.quantity, base_quantity=it.base_quantity, unit_price=it.unit_price,
        )
        for it in items
    ]
    session = cash.get_open_session(db, order.warehouse_id)
    sale = Sale(
        sale_number=next_number(db, Sale.sale_number),
        warehouse_id=order.warehouse_id, user_id=user_id,
        cash_session_id=session.id if session else None,
        order_id=order.id,
        subtotal=order.total, delivery_fee=Decimal("0"), total=order.total,
        payment_method=payment_method, price_segment=order.price_segment,
        customer_name=order.customer_name,
        notes=f"payment of fiado #{order.order_number}",
        status=SaleStatus.COMPLETED,
    )
    db.add(sale)
    db.flush()
    # stock already left when the fiado was created
    add_items(db, sale, lines, decrement=False, user_id=user_id)

    order.status = OrderStatus.PAID
    order.paid_at = utcnow()
    order.payment_method = payment_method
    order.paid_by_user_id = user_id

    if payment_method == PaymentMethod.CASH and order.total > 0:
        cash.record_movement(db, order.warehouse_id, MoveType.IN, order.total, CashRef.ORDER_PAYMENT,
                             order.id, notes=f"fiado #{order.order_number} collected", user_id=user_id)
    db.flush()
    log.info("fiado #%s paid (%s) as sale #%s", order.order_number, payment_method.value, sale.sale_number)
    return order, sale


def _restock(db: Session, order: Order, user_id: str | None, notes: str) -> None:
    for it in order_items(db, order.id):
        apply_movement(
            db, get_product(db, it.product_id), order.warehouse_id, MoveType.IN, it.base_quantity,
            StockRef.ORDER_CANCEL, order.id, notes=notes, user_id=user_id,
        )


def cancel_order(db: Session, order_id: str, user_id: str | None = None, reason: str | None = None) -> Order:
    order = get_order(db, order_id)
    _require_pending(order, "cancelled")
    _restock(db, order, user_id, f"fiado #{order.order_number} cancelled")
    order.status = OrderStatus.CANCELLED
    if reason:
        order.notes = f"{order.notes}\n{reason}" if order.notes else reason
    db.flush()
    log.info("fiado #%s cancelled", order.order_number)
    return order


def delete_order(db: Session, order_id: str, user_id: str | None = None) -> None:
    order = get_order(db, order_id)
    if order.status in (OrderStatus.PAID, OrderStatus.RETURNED):
        raise ValueError(f"a {order.status.value.lower()} order cannot be deleted")
    if order.status == OrderStatus.PENDING:
        _restock(db, order, user_id, f"fiado #{order.order_number} deleted")
    log_audit(db, user_id, "order", order.id, "DELETE",
              before={"order_number": order.order_number, "status": order.status.value, "total": order.total})
    for it in order_items(db, order.id):
        db.delete(it)
    db.flush()
    db.delete(order)
    db.flush()
    log.info("fiado #%s deleted", order.order_number)
