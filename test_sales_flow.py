# test_sales_flow.py


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _stock(client, headers, pid):
    return jprint("GET /products/{id}", client.get(f"/products/{pid}", headers=headers))["base_stock"]


def test_presentation_sale_uses_pack_size_and_segment_price(client, auth_headers, warehouse_id, open_till, rice):
    sack = rice["presentations"][0]["id"]
    r = client.post("/sales/", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "price_segment": "SAN_ALAS", "delivery_fee": 2000,
        "items": [
            {"product_id": rice["id"], "presentation_id": sack, "quantity": 2},
            {"product_id": rice["id"], "quantity": 5},
        ],
    })
    sale = jprint("POST /sales", r)
    by_pres = {it["presentation_id"]: it for it in sale["items"]}
    assert by_pres[sack]["base_quantity"] == 50
    assert by_pres[sack]["unit_price"] == 65000
    assert by_pres[None]["unit_price"] == 2800
    assert sale["subtotal"] == 2 * 65000 + 5 * 2800
    assert sale["total"] == sale["subtotal"] + 2000
    assert _stock(client, auth_headers, rice["id"]) == 45

    # employees segment has no sack price: falls back to the public one
    r = client.post("/sales/", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "price_segment": "EMPLOYEES",
        "items": [{"product_id": rice["id"], "presentation_id": sack, "quantity": 1},
                  {"product_id": rice["id"], "quantity": 1}],
    })
    sale = jprint("POST /sales (employees)", r)
    by_pres = {it["presentation_id"]: it for it in sale["items"]}
    assert by_pres[sack]["unit_price"] == 70000
    assert by_pres[None]["unit_price"] == 2500


def test_insufficient_stock_is_rejected_without_partial_writes(client, auth_headers, warehouse_id, open_till, rice):
    r = client.post("/sales/", headers=auth_headers, json={
        "warehouse_id": warehouse_id,
        "items": [{"product_id": rice["id"], "quantity": 60},
                  {"product_id": rice["id"], "quantity": 60}],
    })
    assert r.status_code == 400, r.text
    assert "insufficient stock" in r.json()["detail"]
    assert _stock(client, auth_headers, rice["id"]) == 100

    r = client.get("/cash/movements", headers=auth_headers, params={"warehouse_id": warehouse_id})
    assert jprint("GET /cash/movements", r) == []
    r = client.get("/sales/", headers=auth_headers)
    assert jprint("GET /sales", r)["total"] == 0


def test_payment_rules(client, auth_headers, warehouse_id, rice):
    item = [{"product_id": rice["id"], "quantity": 1}]
    r = client.post("/sales/", headers=auth_headers, json={"items": item, "payment_method": "CREDIT"})
    assert r.status_code == 400
    assert "fiado" in r.json()["detail"]

    r = client.post("/sales/", headers=auth_headers, json={"items": item, "cash_received": 1000})
    assert r.status_code == 400

    r = client.post("/sales/", headers=auth_headers, json={"items": []})
    assert r.status_code == 400

    r = client.post("/sales/", headers=auth_headers, json={"items": [{"product_id": "missing", "quantity": 1}]})
    assert r.status_code == 404


def test_delete_sale_restocks_and_reverses_cash(client, auth_headers, operator_headers, warehouse_id, open_till, rice):
    r = client.post("/sales/", headers=operator_headers, json={
        "warehouse_id": warehouse_id, "items": [{"product_id": rice["id"], "quantity": 4}],
    })
    sale = jprint("POST /sales", r)
    assert _stock(client, auth_headers, rice["id"]) == 96

    r = client.delete(f"/sales/{sale['id']}", headers=operator_headers)
    assert r.status_code == 403

    r = client.delete(f"/sales/{sale['id']}", headers=auth_headers)
    assert jprint("DELETE /sales", r)["status"] == "CANCELLED"
    assert _stock(client, auth_headers, rice["id"]) == 100

    r = client.get("/cash/session", headers=auth_headers, params={"warehouse_id": warehouse_id})
    assert jprint("GET /cash/session", r)["totals"]["expected"] == 100000

    r = client.delete(f"/sales/{sale['id']}", headers=auth_headers)
    assert r.status_code == 400

    r = client.get("/inventory/movements", headers=auth_headers,
                   params={"reference_id": sale["id"]})
    kinds = sorted(m["reference_type"] for m in jprint("GET /inventory/movements", r)["items"])
    assert kinds == ["SALE", "SALE_DELETE"]


def test_delete_sale_from_closed_session_compensates_in_current_one(client, auth_headers, warehouse_id, open_till, rice):
    r = client.post("/sales/", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "items": [{"product_id": rice["id"], "quantity": 1}],
    })
    sale = jprint("POST /sales", r)
    jprint("close", client.post("/cash/close", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "closing_amount": 103000, "username": "admin", "password": "admin123",
    }))
    jprint("open", client.post("/cash/open", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "opening_amount": 103000,
    }))
    jprint("DELETE /sales", client.delete(f"/sales/{sale['id']}", headers=auth_headers))

    r = client.get("/cash/movements", headers=auth_headers, params={"warehouse_id": warehouse_id})
    moves = jprint("GET /cash/movements", r)
    assert [(m["type"], m["reference_type"], m["amount"]) for m in moves] == [("OUT", "SALE_REVERSAL", 3000)]


def test_search_sales(client, auth_headers, warehouse_id, rice):
    jprint("sale", client.post("/sales/", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "customer_name": "Hotel Plaza",
        "items": [{"product_id": rice["id"], "quantity": 1}],
    }))
    assert jprint("by product", client.get("/sales/", headers=auth_headers, params={"search": "rice"}))["total"] == 1
    assert jprint("by customer", client.get("/sales/", headers=auth_headers, params={"search": "plaza"}))["total"] == 1
    assert jprint("by number", client.get("/sales/", headers=auth_headers, params={"search": "#1"}))["total"] == 1
    assert jprint("no match", client.get("/sales/", headers=auth_headers, params={"search": "beans"}))["total"] == 0
