from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


def test_create_model_defaults(client: TestClient):
    resp = client.post(
        "/models",
        json={"ownerId": 3, "name": "Breakout EA", "configuration": {"indicator": "RSI", "parameter": 30}},
    )
    assert resp.status_code == 201
    model = resp.json()
    assert model["user_id"] == 3
    assert model["name"] == "Breakout EA"
    assert model["configuration"] == {"indicator": "RSI", "parameter": 30}
    assert model["backtest_results"] is None
    assert model["is_top"] is False
    assert model["approval_status"] == "none"
    assert model["price"] is None
    assert model["code"] is None


@pytest.mark.parametrize("name", ["", "   "])
def test_create_model_empty_name_is_rejected(client: TestClient, name: str):
    resp = client.post("/models", json={"ownerId": 1, "name": name, "configuration": {}})
    assert resp.status_code == 400
    body = resp.json()
    assert "error" in body
    assert body["details"]["field"] == "name"


@pytest.mark.parametrize("configuration", ["SMA", [1, 2, 3], 42, None])
def test_create_model_non_object_configuration_is_rejected(client: TestClient, configuration):
    resp = client.post("/models", json={"ownerId": 1, "name": "EA", "configuration": configuration})
    assert resp.status_code == 400
    body = resp.json()
    assert "configuration" in body["error"]
    assert "details" in body


def test_create_model_missing_owner_is_rejected(client: TestClient):
    resp = client.post("/models", json={"name": "EA", "configuration": {}})
    assert resp.status_code == 400


def test_list_models_by_owner(client: TestClient, make_model):
    first = make_model(owner_id=1, name="A")
    second = make_model(owner_id=1, name="B")
    make_model(owner_id=2, name="C")

    resp = client.get("/models/1")
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()] == [first["id"], second["id"]]

    resp = client.get("/models/99")
    assert resp.status_code == 200
    assert resp.json() == []


def test_update_model(client: TestClient, make_model):
    model = make_model()
    resp = client.put(
        f"/models/{model['id']}",
        json={"name": "Renamed", "configuration": {"indicator": "EMA", "stopLoss": 25}},
    )
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["name"] == "Renamed"
    assert updated["configuration"] == {"indicator": "EMA", "stopLoss": 25}

    listed = client.get(f"/models/{model['user_id']}").json()
    assert listed[0]["name"] == "Renamed"


def test_update_missing_model_returns_404(client: TestClient):
    resp = client.put("/models/12345", json={"name": "X", "configuration": {}})
    assert resp.status_code == 404
    assert "error" in resp.json()


def test_update_with_empty_name_is_rejected(client: TestClient, make_model):
    model = make_model()
    resp = client.put(f"/models/{model['id']}", json={"name": "", "configuration": {}})
    assert resp.status_code == 400


def test_delete_model(client: TestClient, make_model):
    model = make_model(owner_id=5)
    assert client.get("/models/5").json() != []

    resp = client.delete(f"/models/{model['id']}")
    assert resp.status_code == 200
    assert resp.json()["id"] == model["id"]
    assert client.get("/models/5").json() == []

    resp = client.delete(f"/models/{model['id']}")
    assert resp.status_code == 404


def test_delete_model_removes_versions(client: TestClient, make_model):
    model = make_model()
    client.post(f"/models/{model['id']}/version", json={"code": "int OnInit() { return 0; }"})

    assert client.delete(f"/models/{model['id']}").status_code == 200
    assert client.get(f"/models/{model['id']}/versions").json() == []


def test_backtest_update(client: TestClient, make_model):
    model = make_model()
    resp = client.post(
        f"/models/{model['id']}/backtest-update",
        json={"profit": 120.5, "drawdown": 30, "winRatio": 55.2},
    )
    assert resp.status_code == 200
    assert resp.json()["backtest_results"] == {"profit": 120.5, "drawdown": 30.0, "winRatio": 55.2}

    resp = client.post(
        f"/models/{model['id']}/backtest-update",
        json={"profit": -4, "drawdown": 8, "winRatio": 10},
    )
    assert resp.json()["backtest_results"] == {"profit": -4.0, "drawdown": 8.0, "winRatio": 10.0}


@pytest.mark.parametrize("missing", ["profit", "drawdown", "winRatio"])
def test_backtest_update_requires_all_metrics(client: TestClient, make_model, missing: str):
    model = make_model()
    payload = {"profit": 1.0, "drawdown": 2.0, "winRatio": 3.0}
    payload.pop(missing)

    resp = client.post(f"/models/{model['id']}/backtest-update", json=payload)
    assert resp.status_code == 400
    assert resp.json()["details"]["field"] == missing


def test_backtest_update_missing_model_returns_404(client: TestClient):
    resp = client.post("/models/999/backtest-update", json={"profit": 1, "drawdown": 1, "winRatio": 1})
    assert resp.status_code == 404
