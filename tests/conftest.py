from __future__ import annotations

import os

os.environ.setdefault("LOG_JSON_FORMAT", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("CACHE_BACKEND", "memory")

from typing import Any, Callable, Dict, Optional

import pytest
from fastapi.testclient import TestClient

from eabuilder.app import create_application
from eabuilder.config.settings import settings
from eabuilder.services.cache import reset_model_cache


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(settings.database, "url", f"sqlite+aiosqlite:///{tmp_path / 'eabuilder.db'}")
    reset_model_cache()
    with TestClient(create_application()) as test_client:
        yield test_client
    reset_model_cache()


@pytest.fixture
def make_model(client: TestClient) -> Callable[..., Dict[str, Any]]:
    def _make(
        owner_id: int = 1,
        name: str = "Trend EA",
        configuration: Optional[Dict[str, Any]] = None,
        backtest: Optional[Dict[str, float]] = None,
    ) -> Dict[str, Any]:
        resp = client.post(
            "/models",
            json={
                "ownerId": owner_id,
                "name": name,
                "configuration": configuration if configuration is not None else {"indicator": "SMA", "parameter": 14},
            },
        )
        assert resp.status_code == 201, resp.text
        model = resp.json()
        if backtest is not None:
            resp = client.post(f"/models/{model['id']}/backtest-update", json=backtest)
            assert resp.status_code == 200, resp.text
            model = resp.json()
        return model

    return _make


@pytest.fixture
def listed_model(client: TestClient, make_model) -> Callable[..., Dict[str, Any]]:
    """A model shared at a price and approved for sale."""

    def _listed(price: float = 100, owner_id: int = 7) -> Dict[str, Any]:
        model = make_model(owner_id=owner_id, name="Marketplace EA")
        assert client.post(f"/models/{model['id']}/share", json={"price": price}).status_code == 200
        resp = client.post(f"/models/{model['id']}/approve")
        assert resp.status_code == 200, resp.text
        return resp.json()

    return _listed
