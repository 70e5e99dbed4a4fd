"""Probe endpoints and request tracking headers."""

import pytest


@pytest.mark.integration
class TestHealth:

    @pytest.mark.parametrize("path", ["/api/health", "/api/v1/health"])
    async def test_liveness(self, client, path):
        resp = await client.get(path)
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["app"] == "Workflow Behavior Engine"

    async def test_readiness_checks_database(self, client):
        resp = await client.get("/api/v1/health/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ready", "database": "ok"}

    async def test_status_lists_behavior_types(self, client):
        resp = await client.get("/api/v1/health/status")
        assert resp.status_code == 200
        data = resp.json()
        assert "capacity-check" in data["behavior_types"]
        assert data["running_runs"] == {}
        assert data["limits"]["run_timeout_seconds"] > 0


@pytest.mark.integration
class TestRequestTracking:

    async def test_request_id_generated(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.headers["x-request-id"]
        assert resp.headers["x-process-time"].endswith("ms")

    async def test_request_id_echoed(self, client):
        resp = await client.get("/api/v1/health", headers={"X-Request-ID": "trigger-call-42"})
        assert resp.headers["x-request-id"] == "trigger-call-42"

    async def test_error_body_carries_request_id(self, client):
        resp = await client.get("/api/v1/workflows/", headers={"X-Request-ID": "req-401"})
        assert resp.status_code == 401
        assert resp.headers["x-request-id"] == "req-401"
