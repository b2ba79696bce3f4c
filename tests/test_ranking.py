from __future__ import annotations

from fastapi.testclient import TestClient

from eabuilder.services.ranking import score, select_top


def test_score_defaults_missing_metrics_to_zero():
    assert score({"profit": 100, "drawdown": 10}) == 90
    assert score({"profit": 50}) == 50
    assert score({"drawdown": 5}) == -5
    assert score({}) == 0
    assert score(None) == 0


def test_select_top_orders_by_score():
    candidates = [(1, {"profit": 50, "drawdown": 5}), (2, {"profit": 100, "drawdown": 10})]
    assert select_top(candidates) == [2, 1]


def test_select_top_caps_at_top_n():
    candidates = [(i, {"profit": i, "drawdown": 0}) for i in range(30)]
    top = select_top(candidates, top_n=20)
    assert len(top) == 20
    assert top == list(range(29, 9, -1))

    assert select_top(candidates[:3], top_n=20) == [2, 1, 0]
    assert select_top([], top_n=20) == []


def test_select_top_keeps_input_order_on_ties():
    candidates = [(7, {"profit": 10, "drawdown": 0}), (3, {"profit": 10, "drawdown": 0}), (5, {"profit": 10})]
    assert select_top(candidates) == [7, 3, 5]


def test_rank_scenario(client: TestClient, make_model):
    low = make_model(name="Low", backtest={"profit": 50, "drawdown": 5, "winRatio": 40})
    high = make_model(name="High", backtest={"profit": 100, "drawdown": 10, "winRatio": 60})

    resp = client.post("/models/rank")
    assert resp.status_code == 200
    ranked = resp.json()
    assert [m["id"] for m in ranked] == [high["id"], low["id"]]
    assert all(m["is_top"] for m in ranked)


def test_rank_flags_at_most_twenty(client: TestClient, make_model):
    for i in range(23):
        make_model(owner_id=1, name=f"EA {i}", backtest={"profit": i * 10, "drawdown": 1, "winRatio": 50})
    untested = make_model(owner_id=1, name="No backtest")

    resp = client.post("/models/rank")
    assert resp.status_code == 200
    assert len(resp.json()) == 20

    models = client.get("/models/1").json()
    flagged = [m for m in models if m["is_top"]]
    assert len(flagged) == 20
    assert all(m["backtest_results"] is not None for m in flagged)
    assert not next(m for m in models if m["id"] == untested["id"])["is_top"]
    # the three weakest stay unflagged
    assert {m["name"] for m in models if not m["is_top"]} == {"EA 0", "EA 1", "EA 2", "No backtest"}


def test_rank_with_few_models_flags_all_backtested(client: TestClient, make_model):
    make_model(backtest={"profit": 1, "drawdown": 2, "winRatio": 3})
    make_model()

    ranked = client.post("/models/rank").json()
    assert len(ranked) == 1


def test_rank_is_idempotent(client: TestClient, make_model):
    for i in range(5):
        make_model(name=f"EA {i}", backtest={"profit": 100 - i, "drawdown": i, "winRatio": 50})

    first = client.post("/models/rank").json()
    second = client.post("/models/rank").json()
    assert [m["id"] for m in first] == [m["id"] for m in second]


def test_rank_clears_stale_flags(client: TestClient, make_model):
    model = make_model(backtest={"profit": 10, "drawdown": 0, "winRatio": 50})
    assert client.post("/models/rank").json()[0]["id"] == model["id"]

    client.delete(f"/models/{model['id']}")
    other = make_model(backtest={"profit": 5, "drawdown": 0, "winRatio": 50})
    ranked = client.post("/models/rank").json()
    assert [m["id"] for m in ranked] == [other["id"]]


def test_admin_top_models(client: TestClient, make_model):
    a = make_model(name="A", backtest={"profit": 20, "drawdown": 0, "winRatio": 50})
    b = make_model(name="B", backtest={"profit": 80, "drawdown": 0, "winRatio": 50})
    assert client.get("/admin/top-models").json() == []

    client.post("/models/rank")
    resp = client.get("/admin/top-models")
    assert resp.status_code == 200
    assert [m["id"] for m in resp.json()] == [b["id"], a["id"]]
