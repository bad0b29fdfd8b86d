# test_products_auth.py
from decimal import Decimal
from types import SimpleNamespace

from zora.main import app
from zora.services.errors import NotFound
from zora.services.inventory import stock_display


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type", "").startswith("application/json") else r.text


def _pack(name, qty):
    return SimpleNamespace(name=name, quantity=Decimal(qty))


def test_stock_display():
    packs = [_pack("Arroba", "12.5"), _pack("Bulto", "50")]
    assert stock_display(Decimal("465"), "kg", packs) == "9 Bultos, 1 Arroba, 2.5 kg"
    assert stock_display(Decimal("50"), "kg", packs) == "1 Bulto"
    assert stock_display(Decimal("3"), "kg", packs) == "3 kg"
    assert stock_display(Decimal("0"), "kg", packs) == "0 kg"
    assert stock_display(Decimal("7"), "unit", []) == "7 unit"


# ── auth ────────────────────────────────────────────────────────────────────

def test_login_and_me(client, auth_headers):
    r = client.post("/auth/login", json={"username": "admin", "password": "wrong"})
    assert r.status_code == 401
    r = client.post("/auth/login", json={"username": "ghost", "password": "admin123"})
    assert r.status_code == 401

    me = jprint("GET /auth/me", client.get("/auth/me", headers=auth_headers))
    assert me["username"] == "admin"
    assert me["role"] == "ADMIN"

    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_operator_cannot_use_admin_endpoints(client, operator_headers, rice):
    assert client.get("/users/", headers=operator_headers).status_code == 403
    assert client.post("/products/", headers=operator_headers, json={
        "name": "Beans", "default_price": 1,
    }).status_code == 403
    assert client.delete(f"/products/{rice['id']}", headers=operator_headers).status_code == 403
    assert client.post("/warehouses/", headers=operator_headers, json={"name": "X"}).status_code == 403

    # day-to-day work is allowed
    assert client.get("/products/", headers=operator_headers).status_code == 200


def test_deactivated_user_is_locked_out(client, auth_headers):
    u = jprint("POST /users", client.post("/users/", headers=auth_headers, json={
        "username": "temp", "name": "Temp", "password": "secret123",
    }))
    r = client.post("/users/", headers=auth_headers, json={
        "username": "temp", "name": "Again", "password": "secret123",
    })
    assert r.status_code == 409

    tok = jprint("login", client.post("/auth/login", json={"username": "temp", "password": "secret123"}))
    headers = {"Authorization": f"Bearer {tok['access_token']}"}
    jprint("DELETE /users", client.delete(f"/users/{u['id']}", headers=auth_headers))

    assert client.get("/auth/me", headers=headers).status_code == 401
    assert client.post("/auth/login", json={"username": "temp", "password": "secret123"}).status_code == 401


# ── catalog ─────────────────────────────────────────────────────────────────

def test_product_display_and_barcodes(client, auth_headers, rice):
    assert rice["stock_display"] == "4 Sacks"
    assert rice["low_stock"] is False

    r = client.post("/products/", headers=auth_headers, json={
        "name": "Other", "default_price": 1, "barcode": "7700001",
    })
    assert r.status_code == 400
    r = client.post("/products/", headers=auth_headers, json={
        "name": "Other", "default_price": 1, "barcode": "7700001-25",
    })
    assert r.status_code == 400

    hit = jprint("barcode", client.get("/products/barcode/7700001-25", headers=auth_headers))
    assert hit["product"]["id"] == rice["id"]
    assert hit["presentation_id"] == rice["presentations"][0]["id"]
    hit = jprint("barcode", client.get("/products/barcode/7700001", headers=auth_headers))
    assert hit["presentation_id"] is None
    assert client.get("/products/barcode/000", headers=auth_headers).status_code == 404


def test_add_stock_and_adjust(client, auth_headers, warehouse_id, rice):
    sack = rice["presentations"][0]["id"]
    out = jprint("add-stock", client.post(f"/products/{rice['id']}/add-stock", headers=auth_headers, json={
        "quantity": 2, "presentation_id": sack, "unit_cost": 1900,
    }))
    assert out["product"]["base_stock"] == 150
    assert out["movement"]["quantity"] == 50
    assert out["movement"]["stock_after"] == 150

    mv = jprint("adjust", client.post("/inventory/movements", headers=auth_headers, json={
        "product_id": rice["id"], "type": "ADJUST", "quantity": 8, "notes": "stock count",
    }))
    assert mv["quantity"] == -142
    assert mv["stock_after"] == 8

    r = client.post("/inventory/movements", headers=auth_headers, json={
        "product_id": rice["id"], "type": "OUT", "quantity": 9,
    })
    assert r.status_code == 400

    listing = jprint("low stock", client.get("/products/", headers=auth_headers, params={"low_stock": True}))
    assert [p["id"] for p in listing["items"]] == [rice["id"]]
    assert listing["low_stock_count"] == 1

    moves = jprint("movements", client.get("/inventory/movements", headers=auth_headers,
                                           params={"product_id": rice["id"]}))
    assert moves["total"] == 3


def test_soft_delete_hides_product(client, auth_headers, rice):
    jprint("DELETE /products", client.delete(f"/products/{rice['id']}", headers=auth_headers))
    listing = jprint("GET /products", client.get("/products/", headers=auth_headers))
    assert listing["total"] == 0
    # still reachable by id for history
    assert jprint("GET /products/{id}", client.get(f"/products/{rice['id']}", headers=auth_headers))["is_active"] is False
    assert client.get("/products/barcode/7700001", headers=auth_headers).status_code == 404


def test_only_missing_rows_map_to_404(client, auth_headers):
    # a KeyError or IndexError from a bug must surface as a 500, not as "not found"
    assert NotFound in app.exception_handlers
    assert LookupError not in app.exception_handlers
    assert KeyError not in app.exception_handlers

    r = client.post("/sales/", headers=auth_headers, json={"items": [{"product_id": "does-not-exist", "quantity": 1}]})
    assert r.status_code == 404
    assert r.json()["detail"] == "product not found"
