"""Restocking from suppliers.

Each purchase line adds base stock and folds the incoming cost into the
product's weighted-average cost.  Deleting a purchase takes the stock back out
(and fails if it was already sold); the average cost is left as it is.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.models.common import money
from zora.models.core import MoveType, PriceSegment, Purchase, PurchaseItem, StockRef
from zora.services import cash
from zora.services.errors import NotFound
from zora.services.inventory import apply_movement, get_product, q3, resolve_line
from zora.services.sales import next_number
from zora.util.audit import log_audit
from zora.util.dates import apply_range, day_bounds, local_today
from zora.util.logs import get_logger

log = get_logger("zora.purchases")

ZERO = Decimal("0")


def get_purchase(db: Session, purchase_id: str) -> Purchase:
    p = db.get(Purchase, purchase_id)
    if not p:
        raise NotFound("purchase not found")
    return p


def purchase_items(db: Session, purchase_id: str) -> list[PurchaseItem]:
    return (
        db.query(PurchaseItem)
        .filter(PurchaseItem.purchase_id == purchase_id)
        .order_by(PurchaseItem.created_at, PurchaseItem.id)
        .all()
    )


def average_cost(stock, cost, incoming_qty, incoming_cost) -> Decimal:
    """Weighted-average unit cost after receiving `incoming_qty` at `incoming_cost`."""
    stock, incoming_qty = q3(stock), q3(incoming_qty)
    new_stock = stock + incoming_qty
    if new_stock <= 0:
        return money(incoming_cost)
    return money((stock * money(cost) + incoming_qty * money(incoming_cost)) / new_stock)


def create_purchase(
    db: Session,
    *,
    items: list,
    warehouse_id: str | None = None,
    supplier_name: str | None = None,
    invoice_number: str | None = None,
    notes: str | None = None,
    tax=0,
    discount=0,
    user_id: str | None = None,
) -> Purchase:
    if not items:
        raise ValueError("purchase must have at least one item")
    tax, discount = money(tax), money(discount)
    if tax < 0 or discount < 0:
        raise ValueError("tax and discount cannot be negative")
    wh = cash.get_warehouse(db, warehouse_id)

    lines = []
    for it in items:
        ln = resolve_line(db, it.product_id, it.quantity, PriceSegment.PUBLIC, presentation_id=it.presentation_id)
        unit_cost = money(it.unit_cost)
        if unit_cost < 0:
            raise ValueError("unit cost cannot be negative")
        lines.append((ln, unit_cost))

    subtotal = money(sum((money(unit_cost * ln.quantity) for ln, unit_cost in lines), ZERO))
    total = subtotal + tax - discount
    if total < 0:
        raise ValueError("discount cannot exceed subtotal plus tax")

    supplier_name = (supplier_name or "").strip() or None
    purchase = Purchase(
        purchase_number=next_number(db, Purchase.purchase_number),
        supplier_name=supplier_name, invoice_number=invoice_number, notes=notes,
        warehouse_id=wh.id, subtotal=subtotal, tax=tax, discount=discount, total=total,
        status="RECEIVED", user_id=user_id,
    )
    db.add(purchase)
    db.flush()

    label = f"purchase #{purchase.purchase_number}" + (f" - {supplier_name}" if supplier_name else "")
    for ln, unit_cost in lines:
        # cost per base unit; a pack's cost is spread over its base units
        base_cost = money(unit_cost / ln.presentation.quantity) if ln.presentation else unit_cost
        product = ln.product
        product.cost = average_cost(product.base_stock or 0, product.cost or 0, ln.base_quantity, base_cost)
        db.add(PurchaseItem(
            purchase_id=purchase.id, product_id=product.id, product_name=product.name,
            presentation_id=ln.presentation.id if ln.presentation else None,
            presentation_name=ln.presentation.name if ln.presentation else None,
            quantity=ln.quantity, base_quantity=ln.base_quantity,
            unit_cost=unit_cost, subtotal=money(unit_cost * ln.quantity),
        ))
        apply_movement(
            db, product, wh.id, MoveType.IN, ln.base_quantity, StockRef.PURCHASE, purchase.id,
            notes=label, user_id=user_id, unit_cost=base_cost,
        )
    db.flush()
    log.info("%s received: %s lines, total=%s", label, len(lines), total)
    return purchase


def delete_purchase(db: Session, purchase_id: str, user_id: str | None = None) -> None:
    purchase = get_purchase(db, purchase_id)
    items = purchase_items(db, purchase.id)
    for it in items:
        # fails if part of it was already sold
        apply_movement(
            db, get_product(db, it.product_id), purchase.warehouse_id, MoveType.OUT, it.base_quantity,
            StockRef.PURCHASE_DELETE, purchase.id,
            notes=f"purchase #{purchase.purchase_number} deleted", user_id=user_id,
        )
    log_audit(db, user_id, "purchase", purchase.id, "DELETE",
              before={"purchase_number": purchase.purchase_number, "supplier_name": purchase.supplier_name,
                      "total": purchase.total})
    for it in items:
        db.delete(it)
    db.flush()
    db.delete(purchase)
    db.flush()
    log.info("purchase #%s deleted, stock reverted", purchase.purchase_number)


def stats(db: Session, start=None, end=None) -> dict:
    base = apply_range(db.query(Purchase).filter(Purchase.status == "RECEIVED"), Purchase.created_at, start, end)

    def _agg(q) -> dict:
        count, amount = q.with_entities(func.count(Purchase.id), func.sum(Purchase.total)).one()
        return {"count": count or 0, "amount": float(money(amount or 0))}

    today = local_today()
    today_lo, today_hi = day_bounds(today, today)
    month_lo, _ = day_bounds(today.replace(day=1), None)
    return {
        "total": _agg(base),
        "today": _agg(base.filter(Purchase.created_at >= today_lo, Purchase.created_at < today_hi)),
        "month": _agg(base.filter(Purchase.created_at >= month_lo, Purchase.created_at < today_hi)),
    }
