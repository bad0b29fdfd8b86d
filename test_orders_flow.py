# test_orders_flow.py


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _stock(client, headers, pid):
    return jprint("GET /products/{id}", client.get(f"/products/{pid}", headers=headers))["base_stock"]


def _fiado(client, headers, pid, qty, **extra):
    r = client.post("/orders/", headers=headers, json={
        "customer_name": "Don Pacho", "customer_phone": "3001234567",
        "items": [{"product_id": pid, "quantity": qty}], **extra,
    })
    return jprint("POST /orders", r)


def test_pay_fiado_creates_sale_without_second_decrement(client, auth_headers, warehouse_id, open_till, rice):
    order = _fiado(client, auth_headers, rice["id"], 5, price_segment="SAN_ALAS", due_date="2030-01-31")
    assert order["status"] == "PENDING"
    assert order["total"] == 5 * 2800
    assert order["items"][0]["product_name"] == "Rice"
    assert _stock(client, auth_headers, rice["id"]) == 95

    r = client.post(f"/orders/{order['id']}/pay", headers=auth_headers, json={"payment_method": "TRANSFER"})
    out = jprint("POST /orders/pay", r)
    assert out["order"]["status"] == "PAID"
    assert out["order"]["paid_at"] is not None
    assert out["sale"]["order_id"] == order["id"]
    assert out["sale"]["total"] == 5 * 2800
    assert out["sale"]["price_segment"] == "SAN_ALAS"
    assert _stock(client, auth_headers, rice["id"]) == 95

    # transfer payment does not reach the drawer
    r = client.get("/cash/movements", headers=auth_headers, params={"warehouse_id": warehouse_id})
    assert jprint("GET /cash/movements", r) == []

    r = client.post(f"/orders/{order['id']}/pay", headers=auth_headers, json={})
    assert r.status_code == 400
    r = client.post(f"/orders/{order['id']}/cancel", headers=auth_headers)
    assert r.status_code == 400

    # the settling sale cannot be deleted on its own
    r = client.delete(f"/sales/{out['sale']['id']}", headers=auth_headers)
    assert r.status_code == 400


def test_cancel_restocks_once(client, auth_headers, warehouse_id, rice):
    order = _fiado(client, auth_headers, rice["id"], 10)
    assert _stock(client, auth_headers, rice["id"]) == 90

    r = client.post(f"/orders/{order['id']}/cancel", headers=auth_headers, json={"reason": "customer left"})
    assert jprint("POST /orders/cancel", r)["status"] == "CANCELLED"
    assert _stock(client, auth_headers, rice["id"]) == 100

    assert client.post(f"/orders/{order['id']}/cancel", headers=auth_headers).status_code == 400
    assert client.post(f"/orders/{order['id']}/pay", headers=auth_headers, json={}).status_code == 400
    assert _stock(client, auth_headers, rice["id"]) == 100


def test_fiado_needs_stock(client, auth_headers, rice):
    r = client.post("/orders/", headers=auth_headers, json={
        "customer_name": "Big buyer", "items": [{"product_id": rice["id"], "quantity": 101}],
    })
    assert r.status_code == 400
    assert _stock(client, auth_headers, rice["id"]) == 100


def test_delete_rules(client, auth_headers, operator_headers, warehouse_id, rice):
    pending = _fiado(client, auth_headers, rice["id"], 4)
    cancelled = _fiado(client, auth_headers, rice["id"], 1)
    paid = _fiado(client, auth_headers, rice["id"], 2)
    jprint("cancel", client.post(f"/orders/{cancelled['id']}/cancel", headers=auth_headers))
    jprint("pay", client.post(f"/orders/{paid['id']}/pay", headers=auth_headers, json={}))
    assert _stock(client, auth_headers, rice["id"]) == 94

    assert client.delete(f"/orders/{pending['id']}", headers=operator_headers).status_code == 403

    jprint("DELETE pending", client.delete(f"/orders/{pending['id']}", headers=auth_headers))
    assert _stock(client, auth_headers, rice["id"]) == 98
    jprint("DELETE cancelled", client.delete(f"/orders/{cancelled['id']}", headers=auth_headers))
    assert _stock(client, auth_headers, rice["id"]) == 98

    r = client.delete(f"/orders/{paid['id']}", headers=auth_headers)
    assert r.status_code == 400
    assert client.get(f"/orders/{pending['id']}", headers=auth_headers).status_code == 404


def test_list_and_stats(client, auth_headers, warehouse_id, open_till, rice):
    a = _fiado(client, auth_headers, rice["id"], 1)
    b = _fiado(client, auth_headers, rice["id"], 2, customer_name="Maria")
    jprint("pay", client.post(f"/orders/{b['id']}/pay", headers=auth_headers, json={}))

    r = client.get("/orders/", headers=auth_headers, params={"status": "PENDING"})
    items = jprint("GET /orders", r)["items"]
    assert [o["id"] for o in items] == [a["id"]]

    r = client.get("/orders/", headers=auth_headers, params={"search": "mar"})
    assert jprint("GET /orders search", r)["total"] == 1

    stats = jprint("GET /orders/stats/summary", client.get("/orders/stats/summary", headers=auth_headers))
    assert stats["pending"] == {"count": 1, "total": 3000}
    assert stats["paid"] == {"count": 1, "total": 6000}
    assert stats["cancelled"]["count"] == 0

    # cash collection went into the drawer
    r = client.get("/cash/session", headers=auth_headers, params={"warehouse_id": warehouse_id})
    assert jprint("GET /cash/session", r)["totals"]["fiado_payments"] == 6000
