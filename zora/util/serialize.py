"""Row -> JSON dict helpers shared by the routers.  Money goes out as float."""
from decimal import Decimal, ROUND_HALF_UP


def money_float(x) -> float | None:
    if x is None:
        return None
    return float(Decimal(str(x)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _qty(x) -> float | None:
    if x is None:
        return None
    return float(Decimal(str(x)).quantize(Decimal("0.001")))


def _enum(x):
    return getattr(x, "value", x)


def user_out(u) -> dict:
    return {
        "id": u.id, "username": u.username, "name": u.name, "email": u.email,
        "role": _enum(u.role), "active": bool(u.active), "created_at": u.created_at,
    }


def presentation_out(p) -> dict:
    return {
        "id": p.id, "product_id": p.product_id, "name": p.name,
        "quantity": _qty(p.quantity), "price": money_float(p.price),
        "price_san_alas": money_float(p.price_san_alas), "price_employees": money_float(p.price_employees),
        "barcode": p.barcode, "sort_order": p.sort_order, "is_default": bool(p.is_default),
    }


def product_out(p, presentations=(), stock_display: str | None = None) -> dict:
    return {
        "id": p.id, "name": p.name, "description": p.description, "sku": p.sku, "barcode": p.barcode,
        "cost": money_float(p.cost), "default_price": money_float(p.default_price),
        "price_san_alas": money_float(p.price_san_alas), "price_employees": money_float(p.price_employees),
        "base_unit": p.base_unit, "base_stock": _qty(p.base_stock), "min_stock": _qty(p.min_stock),
        "low_stock": (p.base_stock or 0) <= (p.min_stock or 0),
        "stock_display": stock_display,
        "is_active": bool(p.is_active),
        "presentations": [presentation_out(x) for x in presentations],
    }


def sale_item_out(it) -> dict:
    return {
        "id": it.id, "product_id": it.product_id, "presentation_id": it.presentation_id,
        "quantity": _qty(it.quantity), "base_quantity": _qty(it.base_quantity),
        "unit_price": money_float(it.unit_price), "subtotal": money_float(it.subtotal),
    }


def sale_out(s, items=None) -> dict:
    out = {
        "id": s.id, "sale_number": s.sale_number, "warehouse_id": s.warehouse_id,
        "user_id": s.user_id, "cash_session_id": s.cash_session_id, "order_id": s.order_id,
        "subtotal": money_float(s.subtotal), "delivery_fee": money_float(s.delivery_fee), "total": money_float(s.total),
        "payment_method": _enum(s.payment_method), "price_segment": _enum(s.price_segment),
        "cash_received": money_float(s.cash_received), "change": money_float(s.change),
        "customer_name": s.customer_name, "notes": s.notes,
        "status": _enum(s.status), "created_at": s.created_at,
    }
    if items is not None:
        out["items"] = [sale_item_out(it) for it in items]
    return out


def order_out(o, items=None) -> dict:
    out = {
        "id": o.id, "order_number": o.order_number,
        "customer_name": o.customer_name, "customer_phone": o.customer_phone,
        "notes": o.notes, "due_date": o.due_date, "warehouse_id": o.warehouse_id,
        "price_segment": _enum(o.price_segment), "total": money_float(o.total), "status": _enum(o.status),
        "user_id": o.user_id, "paid_at": o.paid_at, "payment_method": _enum(o.payment_method),
        "created_at": o.created_at,
    }
    if items is not None:
        out["items"] = [{
            "id": it.id, "product_id": it.product_id, "product_name": it.product_name,
            "presentation_id": it.presentation_id, "presentation_name": it.presentation_name,
            "quantity": _qty(it.quantity), "base_quantity": _qty(it.base_quantity),
            "unit_price": money_float(it.unit_price), "subtotal": money_float(it.subtotal),
        } for it in items]
    return out


def return_out(r) -> dict:
    return {
        "id": r.id, "return_number": r.return_number, "warehouse_id": r.warehouse_id,
        "sale_id": r.sale_id, "product_id": r.product_id, "presentation_id": r.presentation_id,
        "quantity": _qty(r.quantity), "base_quantity": _qty(r.base_quantity),
        "unit_price": money_float(r.unit_price), "total": money_float(r.total),
        "reason": r.reason, "notes": r.notes, "refund_method": _enum(r.refund_method),
        "user_id": r.user_id, "created_at": r.created_at,
    }


def cash_movement_out(m) -> dict:
    return {
        "id": m.id, "session_id": m.session_id, "type": _enum(m.type), "amount": money_float(m.amount),
        "reference_type": _enum(m.reference_type), "reference_id": m.reference_id,
        "notes": m.notes, "user_id": m.user_id, "created_at": m.created_at,
    }


def session_out(s) -> dict:
    return {
        "id": s.id, "warehouse_id": s.warehouse_id,
        "opened_at": s.opened_at, "opened_by_user_id": s.opened_by_user_id,
        "opening_amount": money_float(s.opening_amount),
        "closed_at": s.closed_at, "closed_by_user_id": s.closed_by_user_id,
        "closing_amount": money_float(s.closing_amount), "expected_cash": money_float(s.expected_cash),
        "cash_difference": money_float(s.cash_difference),
        "total_sales": money_float(s.total_sales), "total_cash": money_float(s.total_cash),
        "total_transfer": money_float(s.total_transfer), "total_fiados": money_float(s.total_fiados),
        "sales_count": s.sales_count, "notes": s.notes,
    }


def inventory_movement_out(m) -> dict:
    return {
        "id": m.id, "product_id": m.product_id, "warehouse_id": m.warehouse_id,
        "type": _enum(m.type), "quantity": _qty(m.quantity), "stock_after": _qty(m.stock_after),
        "reference_type": _enum(m.reference_type), "reference_id": m.reference_id,
        "unit_cost": money_float(m.unit_cost), "notes": m.notes, "user_id": m.user_id,
        "created_at": m.created_at,
    }


def expense_out(e) -> dict:
    return {
        "id": e.id, "expense_date": e.expense_date, "business": _enum(e.business),
        "category": e.category, "subcategory": e.subcategory, "supplier_name": e.supplier_name,
        "description": e.description, "amount": money_float(e.amount),
        "payment_method": _enum(e.payment_method), "invoice_number": e.invoice_number,
        "is_recurring": bool(e.is_recurring), "notes": e.notes,
        "warehouse_id": e.warehouse_id, "user_id": e.user_id, "created_at": e.created_at,
    }


def loan_out(loan, payments=None) -> dict:
    out = {
        "id": loan.id, "type": _enum(loan.type), "borrower_name": loan.borrower_name,
        "borrower_phone": loan.borrower_phone, "borrower_document": loan.borrower_document,
        "business": _enum(loan.business), "amount": money_float(loan.amount),
        "interest_rate": float(loan.interest_rate or 0), "total_amount": money_float(loan.total_amount),
        "paid_amount": money_float(loan.paid_amount), "balance": money_float(loan.balance),
        "disbursement_date": loan.disbursement_date, "due_date": loan.due_date,
        "status": _enum(loan.status), "notes": loan.notes, "created_at": loan.created_at,
    }
    if payments is not None:
        out["payments"] = [{
            "id": p.id, "amount": money_float(p.amount), "payment_method": _enum(p.payment_method),
            "notes": p.notes, "created_at": p.created_at,
        } for p in payments]
    return out


def purchase_out(p, items=None) -> dict:
    out = {
        "id": p.id, "purchase_number": p.purchase_number, "supplier_name": p.supplier_name,
        "invoice_number": p.invoice_number, "notes": p.notes, "warehouse_id": p.warehouse_id,
        "subtotal": money_float(p.subtotal), "tax": money_float(p.tax), "discount": money_float(p.discount),
        "total": money_float(p.total), "status": p.status, "user_id": p.user_id, "created_at": p.created_at,
    }
    if items is not None:
        out["items"] = [{
            "id": it.id, "product_id": it.product_id, "product_name": it.product_name,
            "presentation_id": it.presentation_id, "presentation_name": it.presentation_name,
            "quantity": _qty(it.quantity), "base_quantity": _qty(it.base_quantity),
            "unit_cost": money_float(it.unit_cost), "subtotal": money_float(it.subtotal),
        } for it in items]
    return out


def notification_out(n) -> dict:
    return {
        "id": n.id, "type": n.type, "message": n.message, "product_id": n.product_id,
        "warehouse_id": n.warehouse_id, "resolved_at": n.resolved_at, "created_at": n.created_at,
    }
