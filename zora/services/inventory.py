from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from zora.models.common import money, utcnow
from zora.models.core import (
    InventoryMovement, MoveType, Notification, PriceSegment, Product, ProductPresentation, StockRef,
)
from zora.services.errors import NotFound
from zora.util.logs import get_logger

log = get_logger("zora.inventory")

Q3 = Decimal("0.001")


def q3(x) -> Decimal:
    # use string to avoid float binary artifacts
    return Decimal(str(x)).quantize(Q3)


def _fmt(x: Decimal) -> str:
    x = q3(x)
    if x == x.to_integral_value():
        return str(int(x))
    return format(x.normalize(), "f")


def stock_display(base_stock, base_unit: str, presentations) -> str:
    """Human readable stock, biggest packs first: "9 Bultos, 15 kg"."""
    remaining = q3(base_stock)
    packs = sorted(
        (p for p in presentations if q3(p.quantity) > 0),
        key=lambda p: q3(p.quantity), reverse=True,
    )
    parts = []
    for p in packs:
        size = q3(p.quantity)
        if remaining >= size:
            count = int(remaining // size)
            remaining -= size * count
            parts.append(f"{count} {p.name}{'s' if count != 1 else ''}")
    if remaining > 0:
        parts.append(f"{_fmt(remaining)} {base_unit}")
    return ", ".join(parts) if parts else f"0 {base_unit}"


def get_product(db: Session, product_id: str) -> Product:
    p = db.get(Product, product_id)
    if not p:
        raise NotFound("product not found")
    return p


def apply_movement(
    db: Session,
    product: Product,
    warehouse_id: str,
    type: MoveType,
    quantity,
    reference_type: StockRef,
    reference_id: str | None = None,
    notes: str | None = None,
    user_id: str | None = None,
    unit_cost=None,
) -> InventoryMovement:
    """Change base stock and log it.  IN adds, OUT subtracts, ADJUST sets the level."""
    qty = q3(quantity)
    current = q3(product.base_stock or 0)
    if type == MoveType.ADJUST:
        if qty < 0:
            raise ValueError("stock level cannot be negative")
        new = qty
    else:
        if qty <= 0:
            raise ValueError("quantity must be greater than zero")
        new = current + qty if type == MoveType.IN else current - qty
        if new < 0:
            raise ValueError(
                f"insufficient stock for {product.name}: available {_fmt(current)}, requested {_fmt(qty)}"
            )
    product.base_stock = new
    mv = InventoryMovement(
        product_id=product.id, warehouse_id=warehouse_id, type=type,
        quantity=new - current, stock_after=new,
        reference_type=reference_type, reference_id=reference_id,
        unit_cost=money(unit_cost) if unit_cost is not None else None,
        notes=notes, user_id=user_id,
    )
    db.add(mv)
    _track_low_stock(db, product, warehouse_id, new)
    db.flush()
    return mv


# ── low-stock notifications ─────────────────────────────────────────────────

LOW_STOCK = "LOW_STOCK"


def _open_low_stock(db: Session, product_id: str) -> Notification | None:
    return (
        db.query(Notification)
        .filter(Notification.type == LOW_STOCK, Notification.product_id == product_id,
                Notification.resolved_at.is_(None))
        .first()
    )


def _track_low_stock(db: Session, product: Product, warehouse_id: str, level: Decimal) -> None:
    """One open LOW_STOCK notification per product while it sits at or under its minimum."""
    minimum = q3(product.min_stock or 0)
    existing = _open_low_stock(db, product.id)
    if level <= minimum:
        if existing:
            return
        db.add(Notification(
            type=LOW_STOCK, product_id=product.id, warehouse_id=warehouse_id,
            message=f"{product.name} is low: {_fmt(level)} {product.base_unit} left (min {_fmt(minimum)})",
        ))
        log.warning("low stock: %s at %s (min %s)", product.name, level, minimum)
    elif existing:
        existing.resolved_at = utcnow()


def resolve_notification(db: Session, notification_id: str) -> Notification:
    n = db.get(Notification, notification_id)
    if not n:
        raise NotFound("notification not found")
    if n.resolved_at is None:
        n.resolved_at = utcnow()
        db.flush()
    return n


# ── line resolution ─────────────────────────────────────────────────────────

@dataclass
class Line:
    product: Product
    presentation: ProductPresentation | None
    quantity: Decimal
    base_quantity: Decimal
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return money(self.unit_price * self.quantity)


def segment_price(item, segment: PriceSegment, default) -> Decimal:
    """Segment price of a product or presentation, falling back to the public one."""
    if segment == PriceSegment.SAN_ALAS and item.price_san_alas is not None:
        return money(item.price_san_alas)
    if segment == PriceSegment.EMPLOYEES and item.price_employees is not None:
        return money(item.price_employees)
    return money(default)


def resolve_line(db: Session, product_id: str, quantity, segment: PriceSegment,
                 presentation_id: str | None = None, unit_price=None) -> Line:
    product = get_product(db, product_id)
    if not product.is_active:
        raise ValueError(f"product {product.name} is inactive")
    qty = q3(quantity)
    if qty <= 0:
        raise ValueError("quantity must be greater than zero")

    pres = None
    if presentation_id:
        pres = db.get(ProductPresentation, presentation_id)
        if not pres or pres.product_id != product.id:
            raise NotFound("presentation not found")
        base_qty = q3(qty * pres.quantity)
        price = segment_price(pres, segment, pres.price)
    else:
        base_qty = qty
        price = segment_price(product, segment, product.default_price)

    if unit_price is not None:
        price = money(unit_price)
        if price < 0:
            raise ValueError("unit price cannot be negative")
    return Line(product, pres, qty, base_qty, price)


def check_stock(lines: list[Line]) -> None:
    """Fail before any write if a product (summed over lines) is short."""
    need: dict[str, Decimal] = defaultdict(Decimal)
    by_id: dict[str, Product] = {}
    for ln in lines:
        need[ln.product.id] += ln.base_quantity
        by_id[ln.product.id] = ln.product
    for pid, qty in need.items():
        p = by_id[pid]
        if q3(p.base_stock or 0) < qty:
            raise ValueError(
                f"insufficient stock for {p.name}: available {_fmt(p.base_stock or 0)}, requested {_fmt(qty)}"
            )


def low_stock_count(db: Session) -> int:
    return (
        db.query(func.count(Product.id))
        .filter(Product.is_active.is_(True), Product.base_stock <= Product.min_stock)
        .scalar()
    )
