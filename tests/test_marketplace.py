from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from eabuilder.exceptions import ValidationError
from eabuilder.services.marketplace import compute_split, validate_price


@pytest.mark.parametrize("price", ["0.01", "0.05", "1", "9.99", "33.33", "100", "101.01", "12345.67"])
def test_split_adds_up_to_price(price: str):
    commission, developer_share = compute_split(Decimal(price))
    assert commission + developer_share == Decimal(price)
    assert commission == (Decimal(price) * Decimal("0.20")).quantize(Decimal("0.01"), rounding="ROUND_HALF_UP")


def test_split_of_one_hundred():
    assert compute_split(Decimal("100")) == (Decimal("20.00"), Decimal("80.00"))
    assert compute_split(Decimal("100"), commission_rate=0.3) == (Decimal("30.00"), Decimal("70.00"))


@pytest.mark.parametrize("price", [0, -5, 0.001, "100", True, float("inf"), float("nan"), 1e10, 1e300])
def test_invalid_prices(price):
    with pytest.raises(ValidationError) as exc_info:
        validate_price(price)
    assert exc_info.value.field == "price"


@pytest.mark.parametrize(
    "price, message",
    [
        (0.004, "Price must be at least 0.01"),
        (-1, "Price must be at least 0.01"),
        (10_000_000_000, "Price must not exceed 9999999999.99"),
        (Decimal("9999999999.995"), "Price must not exceed 9999999999.99"),
    ],
)
def test_price_bound_messages(price, message):
    with pytest.raises(ValidationError) as exc_info:
        validate_price(price)
    assert exc_info.value.message == message


def test_price_bounds_are_inclusive():
    assert validate_price(0.005) == Decimal("0.01")
    assert validate_price(Decimal("9999999999.99")) == Decimal("9999999999.99")


def test_share_and_approve(client: TestClient, make_model):
    model = make_model()

    resp = client.post(f"/models/{model['id']}/share", json={"price": 49.99})
    assert resp.status_code == 200
    shared = resp.json()
    assert shared["approval_status"] == "pending"
    assert shared["price"] == 49.99
    assert client.get("/marketplace").json() == []

    resp = client.post(f"/models/{model['id']}/approve")
    assert resp.status_code == 200
    assert resp.json()["approval_status"] == "approved"

    listing = client.get("/marketplace").json()
    assert [m["id"] for m in listing] == [model["id"]]


@pytest.mark.parametrize("price", [0, -10])
def test_share_requires_positive_price(client: TestClient, make_model, price):
    model = make_model()
    resp = client.post(f"/models/{model['id']}/share", json={"price": price})
    assert resp.status_code == 400
    assert resp.json()["details"]["field"] == "price"


def test_share_rejects_price_beyond_column_range(client: TestClient, make_model):
    model = make_model()
    resp = client.post(f"/models/{model['id']}/share", json={"price": 1e10})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Price must not exceed 9999999999.99"
    assert client.get(f"/models/{model['user_id']}").json()[0]["approval_status"] == "none"


def test_share_missing_model_returns_404(client: TestClient):
    assert client.post("/models/777/share", json={"price": 10}).status_code == 404


def test_share_after_approval_returns_404(client: TestClient, listed_model):
    model = listed_model()
    resp = client.post(f"/models/{model['id']}/share", json={"price": 5})
    assert resp.status_code == 404


def test_approve_requires_pending(client: TestClient, make_model, listed_model):
    model = make_model()
    assert client.post(f"/models/{model['id']}/approve").status_code == 404
    assert client.post("/models/31337/approve").status_code == 404

    approved = listed_model()
    assert client.post(f"/models/{approved['id']}/approve").status_code == 404


def test_purchase_reports_split(client: TestClient, listed_model):
    model = listed_model(price=100, owner_id=7)

    resp = client.post("/marketplace/purchase", json={"modelId": model["id"], "buyerId": 21})
    assert resp.status_code == 200
    body = resp.json()
    assert "Commission: 20.00" in body["message"]
    assert "Developer share: 80.00" in body["message"]
    assert body["commission"] == 20.0
    assert body["developerShare"] == 80.0

    order = body["order"]
    assert order["user_id"] == 21
    assert order["amount"] == 100.0
    assert order["status"] == "completed"
    assert order["order_id"].startswith("order_")


def test_purchase_writes_balanced_ledger(client: TestClient, listed_model):
    model = listed_model(price=59.99, owner_id=7)
    body = client.post("/marketplace/purchase", json={"modelId": model["id"], "buyerId": 21}).json()

    entries = {e["entry_type"]: e for e in body["ledger"]}
    assert entries["buyer_debit"]["amount"] == -59.99
    assert entries["buyer_debit"]["user_id"] == 21
    assert entries["seller_credit"]["user_id"] == 7
    assert entries["platform_commission"]["user_id"] is None
    assert round(sum(e["amount"] for e in body["ledger"]), 2) == 0

    seller_ledger = client.get("/marketplace/ledger/7").json()
    assert [e["entry_type"] for e in seller_ledger] == ["seller_credit"]
    assert seller_ledger[0]["amount"] == body["developerShare"]

    orders = client.get("/marketplace/orders/21").json()
    assert [o["order_id"] for o in orders] == [body["order"]["order_id"]]


def test_purchase_marks_model_sold(client: TestClient, listed_model):
    model = listed_model()
    assert client.post("/marketplace/purchase", json={"modelId": model["id"], "buyerId": 1}).status_code == 200

    assert client.get("/marketplace").json() == []
    owned = client.get(f"/models/{model['user_id']}").json()
    assert owned[0]["approval_status"] == "sold"

    resp = client.post("/marketplace/purchase", json={"modelId": model["id"], "buyerId": 2})
    assert resp.status_code == 404
    assert client.get("/marketplace/orders/2").json() == []


@pytest.mark.parametrize("price", [None, 1, 1000])
def test_purchase_requires_approval(client: TestClient, make_model, price):
    model = make_model()
    if price is not None:
        client.post(f"/models/{model['id']}/share", json={"price": price})

    resp = client.post("/marketplace/purchase", json={"modelId": model["id"], "buyerId": 2})
    assert resp.status_code == 404
    assert "error" in resp.json()


def test_purchase_missing_model_returns_404(client: TestClient):
    resp = client.post("/marketplace/purchase", json={"modelId": 4040, "buyerId": 2})
    assert resp.status_code == 404


def test_purchase_requires_ids(client: TestClient):
    resp = client.post("/marketplace/purchase", json={"modelId": 1})
    assert resp.status_code == 400
