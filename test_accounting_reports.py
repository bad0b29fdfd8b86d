# test_accounting_reports.py
from datetime import date, datetime, timezone

from zora.config import settings
from zora.util.dates import day_bounds, period_key


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _sell(client, headers, warehouse_id, pid, qty, **extra):
    r = client.post("/sales/", headers=headers, json={
        "warehouse_id": warehouse_id, "items": [{"product_id": pid, "quantity": qty}], **extra,
    })
    return jprint("POST /sales", r)


def test_summary_net_profit(client, auth_headers, warehouse_id, open_till, rice):
    sale = _sell(client, auth_headers, warehouse_id, rice["id"], 2)
    jprint("POST /expenses", client.post("/expenses/", headers=auth_headers, json={
        "business": "DISTRIBUTOR", "category": "Freight", "amount": 500,
    }))
    jprint("POST /returns", client.post("/returns/", headers=auth_headers, json={
        "sale_id": sale["id"], "product_id": rice["id"], "quantity": 1, "reason": "damaged",
    }))
    # a pending fiado is not revenue yet
    jprint("POST /orders", client.post("/orders/", headers=auth_headers, json={
        "customer_name": "Don Pacho", "items": [{"product_id": rice["id"], "quantity": 1}],
    }))
    # cancelled sales never count
    cancelled = _sell(client, auth_headers, warehouse_id, rice["id"], 10)
    jprint("DELETE /sales", client.delete(f"/sales/{cancelled['id']}", headers=auth_headers))

    s = jprint("GET /accounting/summary", client.get("/accounting/summary", headers=auth_headers))
    assert s["price_segment"] == "ALL"
    assert s["sales"]["count"] == 1
    assert s["sales"]["total"] == 6000
    assert s["sales"]["cost"] == 4000
    assert s["sales"]["gross_profit"] == 2000
    assert s["sales"]["by_payment_method"] == {"CASH": 6000}
    assert s["expenses"]["total"] == 500
    assert s["returns"] == {"count": 1, "total": 3000, "cost_recovered": 2000}
    assert s["pending_fiados"] == {"count": 1, "total": 3000}
    # 2000 gross - (3000 refunded - 2000 back on the shelf) - 500 expenses
    assert s["net_profit"] == 500
    assert s["profit_margin"] == 8.33


def test_segment_filter_and_comparison(client, auth_headers, warehouse_id, rice):
    _sell(client, auth_headers, warehouse_id, rice["id"], 2)
    _sell(client, auth_headers, warehouse_id, rice["id"], 1, price_segment="SAN_ALAS")
    _sell(client, auth_headers, warehouse_id, rice["id"], 4, price_segment="EMPLOYEES",
          payment_method="TRANSFER")

    r = client.get("/accounting/summary", headers=auth_headers, params={"price_segment": "SAN_ALAS"})
    s = jprint("GET /accounting/summary", r)
    assert s["price_segment"] == "SAN_ALAS"
    assert s["sales"]["total"] == 2800
    assert s["sales"]["gross_profit"] == 800

    cmp = jprint("compare", client.get("/accounting/compare-segments", headers=auth_headers))
    assert cmp["PUBLIC"] == {"count": 1, "sales": 6000, "cost": 4000, "profit": 2000, "margin": 33.33}
    assert cmp["SAN_ALAS"]["profit"] == 800
    assert cmp["EMPLOYEES"] == {"count": 1, "sales": 10000, "cost": 8000, "profit": 2000, "margin": 20.0}


def test_sales_by_period(client, auth_headers, warehouse_id, rice):
    _sell(client, auth_headers, warehouse_id, rice["id"], 2)
    _sell(client, auth_headers, warehouse_id, rice["id"], 1, payment_method="TRANSFER")

    r = client.get("/accounting/sales-by-period", headers=auth_headers, params={"group_by": "year"})
    out = jprint("GET /accounting/sales-by-period", r)
    assert len(out["data"]) == 1
    row = out["data"][0]
    assert row["count"] == 2
    assert row["sales"] == 9000
    assert row["cost"] == 6000
    assert row["profit"] == 3000
    assert row["cash"] == 6000 and row["transfer"] == 3000
    assert out["totals"] == {"count": 2, "sales": 9000, "profit": 3000}

    r = client.get("/accounting/sales-by-period", headers=auth_headers, params={"group_by": "month"})
    month = jprint("month", r)["data"][0]["period"]
    assert len(month) == 7 and month[4] == "-"

    r = client.get("/accounting/sales-by-period", headers=auth_headers, params={"group_by": "hour"})
    assert r.status_code == 400


def test_reports_are_admin_only(client, operator_headers):
    for path in ("/accounting/summary", "/accounting/sales-by-period", "/accounting/compare-segments"):
        assert client.get(path, headers=operator_headers).status_code == 403


def test_pending_fiados_follow_segment_filter(client, auth_headers, warehouse_id, rice):
    for segment, qty in (("SAN_ALAS", 1), ("PUBLIC", 2)):
        jprint("POST /orders", client.post("/orders/", headers=auth_headers, json={
            "customer_name": f"Cliente {segment}", "price_segment": segment,
            "items": [{"product_id": rice["id"], "quantity": qty}],
        }))

    r = client.get("/accounting/summary", headers=auth_headers, params={"price_segment": "SAN_ALAS"})
    s = jprint("GET /accounting/summary", r)
    assert s["pending_fiados"] == {"count": 1, "total": 2800}
    assert s["currency"] == "COP"

    s = jprint("GET /accounting/summary", client.get("/accounting/summary", headers=auth_headers))
    assert s["pending_fiados"] == {"count": 2, "total": 2800 + 6000}


def test_day_bounds_and_periods_follow_business_timezone(monkeypatch):
    monkeypatch.setattr(settings, "TZ", "America/Bogota")
    lo, hi = day_bounds(date(2026, 3, 1), date(2026, 3, 1))
    assert lo == datetime(2026, 3, 1, 5, 0, tzinfo=timezone.utc)
    assert hi == datetime(2026, 3, 2, 5, 0, tzinfo=timezone.utc)
    # 02:00 UTC is still the evening before in Bogota
    late = datetime(2026, 3, 2, 2, 0, tzinfo=timezone.utc)
    assert period_key(late, "day") == "2026-03-01"
    assert period_key(late.replace(tzinfo=None), "month") == "2026-03"

    monkeypatch.setattr(settings, "TZ", "UTC")
    assert day_bounds(date(2026, 3, 1), None) == (datetime(2026, 3, 1, tzinfo=timezone.utc), None)
    assert period_key(late, "day") == "2026-03-02"
