"""Product returns and their undo.

create: return row -> stock IN -> inventory movement -> drawer OUT (cash refunds,
open session only) -> sale/order flagged RETURNED.  delete runs the same steps
backwards.  Both run inside the caller's transaction.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.models.common import money
from zora.models.core import (
    CashRef, MoveType, Order, OrderStatus, PaymentMethod, ProductPresentation,
    ProductReturn, SaleStatus, StockRef,
)
from zora.services import cash
from zora.services.errors import NotFound
from zora.services.inventory import apply_movement, get_product, q3
from zora.services.sales import get_sale, next_number, sale_items
from zora.util.audit import log_audit
from zora.util.logs import get_logger

log = get_logger("zora.returns")


def get_return(db: Session, return_id: str) -> ProductReturn:
    r = db.get(ProductReturn, return_id)
    if not r:
        raise NotFound("return not found")
    return r


def _already_returned(db: Session, sale_id: str, product_id: str, exclude_id: str | None = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(ProductReturn.base_quantity), 0)).filter(
        ProductReturn.sale_id == sale_id, ProductReturn.product_id == product_id,
    )
    if exclude_id:
        q = q.filter(ProductReturn.id != exclude_id)
    return q3(q.scalar() or 0)


def create_return(
    db: Session,
    *,
    product_id: str,
    quantity,
    reason: str,
    sale_id: str | None = None,
    presentation_id: str | None = None,
    unit_price=None,
    refund_method: PaymentMethod = PaymentMethod.CASH,
    warehouse_id: str | None = None,
    notes: str | None = None,
    user_id: str | None = None,
) -> ProductReturn:
    if not (reason or "").strip():
        raise ValueError("reason is required")
    if refund_method == PaymentMethod.CREDIT:
        raise ValueError("refunds are paid in cash or by transfer")
    qty = q3(quantity)
    if qty <= 0:
        raise ValueError("quantity must be greater than zero")

    product = get_product(db, product_id)
    pres = None
    if presentation_id:
        pres = db.get(ProductPresentation, presentation_id)
        if not pres or pres.product_id != product.id:
            raise NotFound("presentation not found")
    base_qty = q3(qty * pres.quantity) if pres else qty

    sale = None
    if sale_id:
        sale = get_sale(db, sale_id)
        if sale.status == SaleStatus.CANCELLED:
            raise ValueError("cannot return items from a cancelled sale")
        lines = [it for it in sale_items(db, sale.id) if it.product_id == product.id]
        if not lines:
            raise ValueError("product is not part of this sale")
        sold = sum((q3(it.base_quantity) for it in lines), Decimal("0"))
        returned = _already_returned(db, sale.id, product.id)
        if returned + base_qty > sold:
            raise ValueError(
                f"cannot return more than was sold: sold {sold}, already returned {returned}"
            )
        if unit_price is None:
            match = next((it for it in lines if it.presentation_id == presentation_id), None)
            if match:
                unit_price = match.unit_price
            else:
                # returned in a different pack than sold: go through the base-unit price
                per_base = Decimal(lines[0].subtotal) / q3(lines[0].base_quantity)
                unit_price = per_base * base_qty / qty
        wh_id = sale.warehouse_id
    else:
        if unit_price is None:
            unit_price = pres.price if pres else product.default_price
        wh_id = cash.get_warehouse(db, warehouse_id).id

    unit_price = money(unit_price)
    if unit_price < 0:
        raise ValueError("unit price cannot be negative")
    total = money(unit_price * qty)

    # 1. return row
    ret = ProductReturn(
        return_number=next_number(db, ProductReturn.return_number),
        warehouse_id=wh_id, sale_id=sale.id if sale else None,
        product_id=product.id, presentation_id=pres.id if pres else None,
        quantity=qty, base_quantity=base_qty, unit_price=unit_price, total=total,
        reason=reason.strip(), notes=notes, refund_method=refund_method, user_id=user_id,
    )
    db.add(ret)
    db.flush()

    # 2-3. stock back in, with its ledger row
    apply_movement(db, product, wh_id, MoveType.IN, base_qty, StockRef.RETURN, ret.id,
                   notes=f"return #{ret.return_number}: {ret.reason}", user_id=user_id)

    # 4. refund leaves the drawer
    if refund_method == PaymentMethod.CASH and total > 0:
        cash.record_movement(db, wh_id, MoveType.OUT, total, CashRef.RETURN, ret.id,
                             notes=f"return #{ret.return_number}", user_id=user_id)

    # 5. originating sale/order
    if sale:
        sale.status = SaleStatus.RETURNED
        if sale.order_id:
            order = db.get(Order, sale.order_id)
            if order:
                order.status = OrderStatus.RETURNED
    db.flush()
    log.info("return #%s: %s x%s of %s, refund %s (%s)",
             ret.return_number, qty, product.name, total, refund_method.value, ret.reason)
    return ret


def delete_return(db: Session, return_id: str, user_id: str | None = None) -> None:
    ret = get_return(db, return_id)
    product = get_product(db, ret.product_id)

    # stock comes back out; fails if it was already sold again
    apply_movement(db, product, ret.warehouse_id, MoveType.OUT, ret.base_quantity,
                   StockRef.RETURN_CANCEL, ret.id,
                   notes=f"return #{ret.return_number} deleted", user_id=user_id)
    cash.reverse_movements(db, CashRef.RETURN, ret.id, user_id=user_id)

    if ret.sale_id:
        others = (
            db.query(ProductReturn)
            .filter(ProductReturn.sale_id == ret.sale_id, ProductReturn.id != ret.id)
            .count()
        )
        sale = get_sale(db, ret.sale_id)
        if not others and sale.status == SaleStatus.RETURNED:
            sale.status = SaleStatus.COMPLETED
            if sale.order_id:
                order = db.get(Order, sale.order_id)
                if order and order.status == OrderStatus.RETURNED:
                    order.status = OrderStatus.PAID

    log_audit(db, user_id, "product_return", ret.id, "DELETE",
              before={"return_number": ret.return_number, "product_id": ret.product_id,
                      "base_quantity": ret.base_quantity, "total": ret.total})
    db.delete(ret)
    db.flush()
    log.info("return #%s deleted", ret.return_number)
