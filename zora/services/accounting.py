"""Profit & loss figures.

Cancelled sales never count.  Returned sales keep their revenue; the refunds
are subtracted separately (net of the cost of the goods that came back), so a
partial return does not wipe out the whole ticket.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from zora.config import settings
from zora.models.common import money
from zora.models.core import (
    Expense, Order, OrderStatus, PaymentMethod, PriceSegment, Product, ProductReturn,
    Sale, SaleItem, SaleStatus,
)
from zora.util.dates import apply_range, period_key

ZERO = Decimal("0")


def _pct(part: Decimal, whole: Decimal) -> float:
    if not whole:
        return 0.0
    return float((part / whole * 100).quantize(Decimal("0.01")))


def _sales(db: Session, start: date | None, end: date | None, segment: PriceSegment | None) -> list[Sale]:
    q = db.query(Sale).filter(Sale.status != SaleStatus.CANCELLED)
    q = apply_range(q, Sale.created_at, start, end)
    if segment:
        q = q.filter(Sale.price_segment == segment)
    return q.order_by(Sale.created_at).all()


def _costs(db: Session, sales: list[Sale]) -> dict[str, Decimal]:
    """Cost of goods per sale id (unit cost captured at sale time x base quantity)."""
    out: dict[str, Decimal] = defaultdict(Decimal)
    ids = [s.id for s in sales]
    if not ids:
        return out
    for it in db.query(SaleItem).filter(SaleItem.sale_id.in_(ids)):
        out[it.sale_id] += Decimal(it.unit_cost or 0) * Decimal(it.base_quantity)
    return out


def _returns(db: Session, start: date | None, end: date | None) -> tuple[int, Decimal, Decimal]:
    rows = apply_range(db.query(ProductReturn), ProductReturn.created_at, start, end).all()
    total = sum((r.total for r in rows), ZERO)
    cost = ZERO
    for r in rows:
        unit_cost = None
        if r.sale_id:
            it = db.query(SaleItem).filter(SaleItem.sale_id == r.sale_id,
                                           SaleItem.product_id == r.product_id).first()
            unit_cost = it.unit_cost if it else None
        if unit_cost is None:
            p = db.get(Product, r.product_id)
            unit_cost = p.cost if p else ZERO
        cost += Decimal(unit_cost) * Decimal(r.base_quantity)
    return len(rows), money(total), money(cost)


def summary(db: Session, start: date | None = None, end: date | None = None,
            segment: PriceSegment | None = None) -> dict:
    sales = _sales(db, start, end, segment)
    costs = _costs(db, sales)
    total_sales = sum((s.total for s in sales), ZERO)
    cost = money(sum(costs.values(), ZERO))
    gross = money(total_sales) - cost

    by_method = defaultdict(Decimal)
    for s in sales:
        by_method[s.payment_method.value] += s.total

    eq = db.query(Expense)
    if start:
        eq = eq.filter(Expense.expense_date >= start)
    if end:
        eq = eq.filter(Expense.expense_date <= end)
    expenses = eq.all()
    exp_total = money(sum((e.amount for e in expenses), ZERO))
    by_category = defaultdict(Decimal)
    for e in expenses:
        by_category[e.category] += e.amount

    pq = db.query(Order).filter(Order.status == OrderStatus.PENDING)
    if segment:
        pq = pq.filter(Order.price_segment == segment)
    pending = pq.all()
    ret_count, ret_total, ret_cost = _returns(db, start, end)

    net = gross - (ret_total - ret_cost) - exp_total
    return {
        "period": {"start": start, "end": end},
        "price_segment": segment.value if segment else "ALL",
        "currency": settings.CURRENCY,
        "sales": {
            "count": len(sales),
            "total": float(money(total_sales)),
            "cost": float(cost),
            "gross_profit": float(gross),
            "by_payment_method": {k: float(money(v)) for k, v in by_method.items()},
        },
        "pending_fiados": {
            "count": len(pending),
            "total": float(money(sum((o.total for o in pending), ZERO))),
        },
        "expenses": {
            "total": float(exp_total),
            "by_category": [{"category": k, "total": float(money(v))}
                            for k, v in sorted(by_category.items(), key=lambda kv: -kv[1])],
        },
        "returns": {"count": ret_count, "total": float(ret_total), "cost_recovered": float(ret_cost)},
        "net_profit": float(net),
        "profit_margin": _pct(net, total_sales),
    }


def sales_by_period(db: Session, start: date | None = None, end: date | None = None,
                    group_by: str = "day", segment: PriceSegment | None = None) -> dict:
    if group_by not in ("day", "week", "month", "year"):
        raise ValueError("group_by must be day, week, month or year")
    sales = _sales(db, start, end, segment)
    costs = _costs(db, sales)
    buckets: dict[str, dict] = {}
    for s in sales:
        b = buckets.setdefault(period_key(s.created_at, group_by), {
            "sales": ZERO, "cost": ZERO, "count": 0, "cash": ZERO, "transfer": ZERO,
        })
        b["sales"] += s.total
        b["cost"] += costs.get(s.id, ZERO)
        b["count"] += 1
        if s.payment_method == PaymentMethod.TRANSFER:
            b["transfer"] += s.total
        else:
            b["cash"] += s.total
    rows = []
    for key in sorted(buckets):
        b = buckets[key]
        rows.append({
            "period": key,
            "count": b["count"],
            "sales": float(money(b["sales"])),
            "cost": float(money(b["cost"])),
            "profit": float(money(b["sales"] - b["cost"])),
            "cash": float(money(b["cash"])),
            "transfer": float(money(b["transfer"])),
        })
    return {
        "group_by": group_by,
        "price_segment": segment.value if segment else "ALL",
        "currency": settings.CURRENCY,
        "data": rows,
        "totals": {
            "count": sum(r["count"] for r in rows),
            "sales": float(money(sum((b["sales"] for b in buckets.values()), ZERO))),
            "profit": float(money(sum((b["sales"] - b["cost"] for b in buckets.values()), ZERO))),
        },
    }


def compare_segments(db: Session, start: date | None = None, end: date | None = None) -> dict:
    sales = _sales(db, start, end, None)
    costs = _costs(db, sales)
    out = {}
    for seg in PriceSegment:
        mine = [s for s in sales if s.price_segment == seg]
        total = sum((s.total for s in mine), ZERO)
        cost = sum((costs.get(s.id, ZERO) for s in mine), ZERO)
        profit = total - cost
        out[seg.value] = {
            "count": len(mine),
            "sales": float(money(total)),
            "cost": float(money(cost)),
            "profit": float(money(profit)),
            "margin": _pct(profit, total),
        }
    return out
