from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from eabuilder.config.settings import ApplicationSettings
from eabuilder.exceptions import StoreError
from eabuilder.services.store import store_operation


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["database"]["connected"] is True


def test_root_and_probes(client: TestClient):
    assert client.get("/").json()["name"] == "EA Builder"
    assert client.get("/ready").json()["ready"] is True
    assert client.get("/live").json()["alive"] is True


def test_unknown_route_uses_error_body(client: TestClient):
    resp = client.get("/does-not-exist")
    assert resp.status_code == 404
    assert "error" in resp.json()


def test_malformed_json_is_a_client_error(client: TestClient):
    resp = client.post("/models", content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_request_id_header(client: TestClient):
    resp = client.get("/models/1")
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Correlation-ID")


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DB_URL", "sqlite+aiosqlite:///./local.db")
    monkeypatch.setenv("RANKING_TOP_N", "5")
    monkeypatch.setenv("MARKETPLACE_COMMISSION_RATE", "0.25")
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, http://localhost:5173")

    cfg = ApplicationSettings()
    assert cfg.database.async_url == "sqlite+aiosqlite:///./local.db"
    assert cfg.database.is_sqlite
    assert cfg.ranking.top_n == 5
    assert cfg.marketplace.commission_rate == 0.25
    assert cfg.cors_origins == ["http://localhost:3000", "http://localhost:5173"]


def test_default_database_url_is_postgres(monkeypatch):
    monkeypatch.delenv("DB_URL", raising=False)
    cfg = ApplicationSettings()
    assert cfg.database.async_url.startswith("postgresql+asyncpg://")


def test_cors_origins_accept_a_json_list(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", '["https://app.example.com"]')
    assert ApplicationSettings().cors_origins == ["https://app.example.com"]


def test_store_operation_wraps_sqlalchemy_errors():
    async def failing_block():
        async with store_operation("load EA model"):
            raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    with pytest.raises(StoreError) as exc_info:
        asyncio.run(failing_block())
    assert exc_info.value.status_code == 500
    assert exc_info.value.to_dict()["error"] == "Store failure during load EA model"
    assert "disk I/O error" in exc_info.value.details


def test_store_failure_renders_500(client: TestClient, make_model, monkeypatch):
    make_model(owner_id=4)

    async def broken_execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    monkeypatch.setattr(AsyncSession, "execute", broken_execute)
    resp = client.get("/models/4")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Store failure during list EA models"
    assert "database is locked" in body["details"]
