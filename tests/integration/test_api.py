"""Integration tests for API endpoints using FastAPI TestClient."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from multistore.adapters.outbound.encryption import AesGcmEncryptor, generate_key
from multistore.adapters.outbound.storage import MemoryStorageBackend
from multistore.config import get_settings
from multistore.main import create_app
from multistore.shared.providers import ProviderRegistry


@pytest.fixture
def settings():
    return get_settings(memory_backend_enabled=True, health_check_interval_seconds=3600)


@pytest.fixture
def registry():
    encryptor = AesGcmEncryptor()
    return ProviderRegistry(
        {
            "primary": MemoryStorageBackend(encryptor, name="primary"),
            "secondary": MemoryStorageBackend(encryptor, name="secondary"),
        },
        timeout_s=5.0,
        health_check_interval_s=3600.0,
    )


@pytest.fixture
def client(settings, registry):
    with TestClient(create_app(settings, registry)) as client:
        yield client


@pytest.fixture
def key_headers():
    return {"X-Storage-Key": generate_key()}


class TestHealthEndpoints:
    def test_health_check(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["services"]["primary"] == "healthy"
        assert data["services"]["redundancy_level"] == "dual"
        assert "X-Request-ID" in resp.headers

    def test_metrics_endpoint(self, client):
        client.get("/api/v1/health")
        resp = client.get("/api/v1/metrics")
        assert resp.status_code == 200
        assert b"http_requests_total" in resp.content
        assert b"storage_provider_health_score" in resp.content


class TestFileEndpoints:
    def test_store_and_retrieve(self, client, key_headers):
        resp = client.put("/api/v1/files/notes/today.txt", content=b"hello", headers=key_headers)
        assert resp.status_code == 201
        receipt = resp.json()
        assert receipt["stored_on"] == ["primary", "secondary"]
        assert receipt["level"] == "dual"
        assert receipt["minimum_required"] == 1

        resp = client.get("/api/v1/files/notes/today.txt", headers=key_headers)
        assert resp.status_code == 200
        assert resp.content == b"hello"

    def test_missing_file_is_404(self, client, key_headers):
        resp = client.get("/api/v1/files/absent.txt", headers=key_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "FILE_NOT_FOUND"

    def test_wrong_key_is_502(self, client, key_headers):
        client.put("/api/v1/files/f.txt", content=b"hello", headers=key_headers)
        resp = client.get("/api/v1/files/f.txt", headers={"X-Storage-Key": generate_key()})
        assert resp.status_code == 502
        assert resp.json()["code"] == "ALL_PROVIDERS_FAILED"

    def test_storage_key_required(self, client):
        resp = client.put("/api/v1/files/f.txt", content=b"hello")
        assert resp.status_code == 422

    def test_exists_and_head(self, client, key_headers):
        client.put("/api/v1/files/f.txt", content=b"hello", headers=key_headers)

        assert client.get("/api/v1/files/f.txt/exists").json() == {"filename": "f.txt", "exists": True}
        assert client.get("/api/v1/files/g.txt/exists").json()["exists"] is False
        assert client.head("/api/v1/files/f.txt").status_code == 200
        assert client.head("/api/v1/files/g.txt").status_code == 404

    def test_list_and_delete(self, client, key_headers):
        client.put("/api/v1/files/b.txt", content=b"1", headers=key_headers)
        client.put("/api/v1/files/a.txt", content=b"2", headers=key_headers)
        assert client.get("/api/v1/files").json() == {"total": 2, "files": ["a.txt", "b.txt"]}

        resp = client.delete("/api/v1/files/a.txt")
        assert resp.status_code == 200
        assert sorted(resp.json()["deleted_from"]) == ["primary", "secondary"]
        assert client.get("/api/v1/files").json()["files"] == ["b.txt"]

    def test_invalid_filename_is_422(self, client, key_headers):
        resp = client.put("/api/v1/files/a//b", content=b"x", headers=key_headers)
        assert resp.status_code == 422


class TestProviderEndpoints:
    def test_provider_health(self, client):
        resp = client.get("/api/v1/providers/health")
        assert resp.status_code == 200
        assert [p["key"] for p in resp.json()] == ["primary", "secondary"]
        assert all(p["is_healthy"] for p in resp.json())

    def test_statistics(self, client):
        data = client.get("/api/v1/providers/statistics").json()
        assert data["total_providers"] == 2
        assert data["healthy_providers"] == 2
        assert data["redundancy_level"] == "dual"
        assert data["redundancy_enabled"] is True

    def test_update_redundancy(self, client, registry):
        resp = client.put("/api/v1/providers/redundancy", json={"level": "SINGLE"})
        assert resp.status_code == 200
        assert resp.json()["redundancy_level"] == "single"
        assert registry.redundancy_enabled is False

        resp = client.put("/api/v1/providers/redundancy", json={"enabled": True, "preferred_backend": "secondary"})
        assert resp.json()["redundancy_level"] == "dual"
        assert resp.json()["preferred_backend"] == "secondary"

    def test_update_redundancy_rejects_unknown_level(self, client):
        resp = client.put("/api/v1/providers/redundancy", json={"level": "everything"})
        assert resp.status_code == 422

    def test_manual_health_check(self, client):
        resp = client.post("/api/v1/providers/health-check")
        assert resp.status_code == 200
        assert resp.json() == {"results": {"primary": True, "secondary": True}, "healthy": 2, "total": 2}


class TestUnavailableStorage:
    @pytest.fixture
    def client(self, settings):
        empty = ProviderRegistry(health_check_interval_s=3600.0)
        with TestClient(create_app(settings, empty)) as client:
            yield client

    def test_health_degraded(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"

    def test_storage_routes_return_503(self, client, key_headers):
        resp = client.get("/api/v1/files/f.txt", headers=key_headers)
        assert resp.status_code == 503
        assert resp.json()["code"] == "NOT_INITIALIZED"

    def test_manual_health_check_returns_503(self, client):
        resp = client.post("/api/v1/providers/health-check")
        assert resp.status_code == 503
        assert resp.json()["code"] == "NOT_INITIALIZED"
