# conftest.py
import os

# must be set before zora.config is imported
os.environ["APP_ENV"] = "dev"
os.environ["APP_SECRET"] = "test-secret"
os.environ["DB_URL"] = "sqlite://"
os.environ["AUTO_OPEN_CASH_SESSION"] = "false"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin123"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["TZ"] = "UTC"

import pytest
from fastapi.testclient import TestClient

from zora.db import Base, engine
from zora.main import app


@pytest.fixture()
def client():
    # fresh in-memory database per test
    Base.metadata.drop_all(bind=engine)
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def boot(client):
    r = client.get("/healthz")
    assert r.status_code == 200, f"/healthz failed: {r.text}"
    r = client.post("/admin/dev-bootstrap")
    assert r.status_code == 200, f"/admin/dev-bootstrap failed: {r.text}"
    return r.json()


@pytest.fixture()
def auth_headers(client, boot):
    r = client.post("/auth/login", json={"username": "admin", "password": "admin123"})
    assert r.status_code == 200, f"/auth/login failed: {r.text}"
    tok = r.json()["access_token"]
    return {"Authorization": f"Bearer {tok}"}


@pytest.fixture()
def warehouse_id(boot):
    return boot["warehouse_id"]


@pytest.fixture()
def operator_headers(client, auth_headers, rng_suffix):
    username = f"cashier-{rng_suffix}"
    r = client.post("/users/", headers=auth_headers, json={
        "username": username, "name": "Cashier", "password": "secret123", "role": "OPERATOR",
    })
    assert r.status_code == 200, f"POST /users failed: {r.text}"
    r = client.post("/auth/login", json={"username": username, "password": "secret123"})
    assert r.status_code == 200, f"operator login failed: {r.text}"
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture()
def open_till(client, auth_headers, warehouse_id):
    r = client.post("/cash/open", headers=auth_headers, json={
        "warehouse_id": warehouse_id, "opening_amount": 100000,
    })
    assert r.status_code == 200, f"/cash/open failed: {r.text}"
    return r.json()


@pytest.fixture()
def rice(client, auth_headers, warehouse_id):
    """100 kg of rice, sold by the kg or by the 25 kg sack."""
    r = client.post("/products/", headers=auth_headers, json={
        "name": "Rice", "base_unit": "kg", "barcode": "7700001",
        "cost": 2000, "default_price": 3000, "price_san_alas": 2800, "price_employees": 2500,
        "base_stock": 100, "min_stock": 10, "warehouse_id": warehouse_id,
        "presentations": [
            {"name": "Sack", "quantity": 25, "price": 70000, "price_san_alas": 65000,
             "barcode": "7700001-25"},
        ],
    })
    assert r.status_code == 200, f"POST /products failed: {r.text}"
    return r.json()


@pytest.fixture()
def rng_suffix():
    import random, string
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
