# test_purchases.py
from decimal import Decimal

from zora.services.purchases import average_cost


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _product(client, headers, pid):
    return jprint("GET /products/{id}", client.get(f"/products/{pid}", headers=headers))


def _buy(client, headers, warehouse_id, *items, **extra):
    r = client.post("/purchases/", headers=headers, json={"warehouse_id": warehouse_id, "items": list(items), **extra})
    return jprint("POST /purchases", r)


def _sell(client, headers, pid, qty):
    return jprint("POST /sales", client.post("/sales/", headers=headers, json={
        "items": [{"product_id": pid, "quantity": qty}],
    }))


def test_average_cost():
    assert average_cost(Decimal("100"), Decimal("2000"), Decimal("50"), Decimal("2600")) == Decimal("2200.00")
    assert average_cost(Decimal("0"), Decimal("999"), Decimal("5"), Decimal("1500")) == Decimal("1500.00")
    assert average_cost(Decimal("1"), Decimal("10"), Decimal("2"), Decimal("11")) == Decimal("10.67")


def test_purchase_restocks_at_weighted_average_cost(client, auth_headers, warehouse_id, rice):
    p = _buy(client, auth_headers, warehouse_id,
             {"product_id": rice["id"], "quantity": 50, "unit_cost": 2600},
             supplier_name="Molino Roa", invoice_number="F-881")
    assert p["purchase_number"] == 1
    assert p["status"] == "RECEIVED"
    assert p["subtotal"] == 130000 and p["total"] == 130000
    assert p["items"][0]["product_name"] == "Rice"
    product = _product(client, auth_headers, rice["id"])
    assert product["base_stock"] == 150
    assert product["cost"] == 2200

    moves = jprint("GET /inventory/movements", client.get("/inventory/movements", headers=auth_headers,
                                                          params={"reference_id": p["id"]}))["items"]
    assert [(m["type"], m["reference_type"], m["quantity"], m["unit_cost"]) for m in moves] == [
        ("IN", "PURCHASE", 50, 2600),
    ]


def test_purchase_by_presentation_spreads_pack_cost(client, auth_headers, warehouse_id, rice):
    sack = rice["presentations"][0]["id"]
    p = _buy(client, auth_headers, warehouse_id,
             {"product_id": rice["id"], "presentation_id": sack, "quantity": 2, "unit_cost": 60000},
             tax=5000, discount=2000)
    item = p["items"][0]
    assert item["presentation_name"] == "Sack"
    assert item["base_quantity"] == 50
    assert item["unit_cost"] == 60000 and item["subtotal"] == 120000
    assert p["total"] == 120000 + 5000 - 2000

    product = _product(client, auth_headers, rice["id"])
    assert product["base_stock"] == 150
    # (100 kg x 2000 + 50 kg x 2400) / 150 kg
    assert product["cost"] == 2133.33


def test_delete_purchase_reverts_stock(client, auth_headers, warehouse_id, rice):
    p = _buy(client, auth_headers, warehouse_id, {"product_id": rice["id"], "quantity": 20, "unit_cost": 2300})
    assert _product(client, auth_headers, rice["id"])["base_stock"] == 120

    jprint("DELETE /purchases", client.delete(f"/purchases/{p['id']}", headers=auth_headers))
    assert _product(client, auth_headers, rice["id"])["base_stock"] == 100
    assert client.get(f"/purchases/{p['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"/purchases/{p['id']}", headers=auth_headers).status_code == 404

    moves = jprint("GET /inventory/movements", client.get("/inventory/movements", headers=auth_headers,
                                                          params={"reference_id": p["id"]}))["items"]
    assert sorted(m["reference_type"] for m in moves) == ["PURCHASE", "PURCHASE_DELETE"]


def test_delete_purchase_fails_when_stock_was_sold(client, auth_headers, warehouse_id, rice):
    p = _buy(client, auth_headers, warehouse_id, {"product_id": rice["id"], "quantity": 10, "unit_cost": 2000})
    _sell(client, auth_headers, rice["id"], 105)

    r = client.delete(f"/purchases/{p['id']}", headers=auth_headers)
    assert r.status_code == 400
    assert "insufficient stock" in r.json()["detail"]
    assert jprint("GET /purchases/{id}", client.get(f"/purchases/{p['id']}", headers=auth_headers))["id"] == p["id"]
    assert _product(client, auth_headers, rice["id"])["base_stock"] == 5


def test_purchase_validation_and_permissions(client, auth_headers, operator_headers, warehouse_id, rice):
    line = {"product_id": rice["id"], "quantity": 1, "unit_cost": 100}
    r = client.post("/purchases/", headers=operator_headers, json={"items": [line]})
    assert r.status_code == 403

    assert client.post("/purchases/", headers=auth_headers, json={"items": []}).status_code == 400
    r = client.post("/purchases/", headers=auth_headers, json={"items": [line], "discount": 500})
    assert r.status_code == 400
    r = client.post("/purchases/", headers=auth_headers, json={
        "items": [{"product_id": "missing", "quantity": 1, "unit_cost": 1}],
    })
    assert r.status_code == 404
    assert _product(client, auth_headers, rice["id"])["base_stock"] == 100


def test_purchase_listing_and_stats(client, auth_headers, warehouse_id, rice):
    _buy(client, auth_headers, warehouse_id, {"product_id": rice["id"], "quantity": 10, "unit_cost": 2000},
         supplier_name="Molino Roa")
    _buy(client, auth_headers, warehouse_id, {"product_id": rice["id"], "quantity": 5, "unit_cost": 2100},
         supplier_name="Granos del Valle", invoice_number="GV-12")

    r = client.get("/purchases/", headers=auth_headers, params={"search": "molino"})
    out = jprint("GET /purchases", r)
    assert out["total"] == 1 and r.headers["X-Total-Count"] == "1"
    assert out["items"][0]["supplier_name"] == "Molino Roa"
    assert jprint("by invoice", client.get("/purchases/", headers=auth_headers, params={"search": "gv-"}))["total"] == 1
    assert jprint("all", client.get("/purchases/", headers=auth_headers))["total"] == 2

    s = jprint("GET /purchases/stats/summary", client.get("/purchases/stats/summary", headers=auth_headers))
    assert s["total"] == {"count": 2, "amount": 30500}
    assert s["today"] == s["total"]
    assert s["month"] == s["total"]


# ── low-stock notifications ─────────────────────────────────────────────────

def _open_notifications(client, headers):
    return jprint("GET /notifications", client.get("/notifications/", headers=headers))["items"]


def test_low_stock_notification_lifecycle(client, auth_headers, warehouse_id, rice):
    assert _open_notifications(client, auth_headers) == []

    _sell(client, auth_headers, rice["id"], 91)
    notes = _open_notifications(client, auth_headers)
    assert len(notes) == 1
    assert notes[0]["type"] == "LOW_STOCK" and notes[0]["product_id"] == rice["id"]

    # still low: no duplicate
    _sell(client, auth_headers, rice["id"], 1)
    assert len(_open_notifications(client, auth_headers)) == 1

    # restocking above the minimum closes it
    _buy(client, auth_headers, warehouse_id, {"product_id": rice["id"], "quantity": 20, "unit_cost": 2000})
    assert _open_notifications(client, auth_headers) == []
    r = client.get("/notifications/", headers=auth_headers, params={"only_open": False})
    assert jprint("GET /notifications (all)", r)["total"] == 1

    _sell(client, auth_headers, rice["id"], 20)
    notes = _open_notifications(client, auth_headers)
    assert len(notes) == 1
    resolved = jprint("resolve", client.patch(f"/notifications/{notes[0]['id']}/resolve", headers=auth_headers))
    assert resolved["resolved_at"] is not None
    assert _open_notifications(client, auth_headers) == []

    assert client.patch("/notifications/missing/resolve", headers=auth_headers).status_code == 404
