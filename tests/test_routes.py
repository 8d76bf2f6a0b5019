"""Integration tests for the API routes built by the app factory.

Backends are replaced with fakes through ``create_app(admin_deps=...)`` and
the limiter registry gets a controllable clock.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemoryRateLimiter
from app.core.app_factory import create_app
from app.core.config import settings
from app.schemas.auth import AuthUser

from fakes import FakeProfileClient, FakeSessionClient, make_deps

ADMIN = AuthUser(id="u1", email="admin@test.local", user_metadata={"name": "Ada"})
READER = AuthUser(id="u2", email="reader@test.local")


@pytest.fixture
def overrides(monkeypatch: pytest.MonkeyPatch) -> dict[str, dict[str, int]]:
    mapping: dict[str, dict[str, int]] = {}
    monkeypatch.setattr(settings.app, "rate_limit_overrides", mapping)
    return mapping


def build_client(session: FakeSessionClient, service: FakeProfileClient | None = None) -> TestClient:
    app = create_app(
        rate_limiter=InMemoryRateLimiter(clock=Mock(return_value=1000.0)),
        admin_deps=make_deps(session, service),
    )
    return TestClient(app)


@pytest.fixture
def admin_client() -> TestClient:
    return build_client(FakeSessionClient(user=ADMIN, role="admin"))


class TestWhoAmI:
    def test_returns_admin_identity(self, admin_client: TestClient) -> None:
        response = admin_client.get("/api/whoami")

        assert response.status_code == 200
        assert response.json() == {
            "id": "u1",
            "email": "admin@test.local",
            "user_metadata": {"name": "Ada"},
            "role": "admin",
        }

    def test_admin_confirmed_through_elevated_client(self) -> None:
        client = build_client(
            FakeSessionClient(user=ADMIN, role=None),
            FakeProfileClient(role="admin"),
        )

        response = client.get("/api/whoami")

        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_unauthenticated_returns_401_envelope(self) -> None:
        client = build_client(FakeSessionClient(user=None))

        response = client.get("/api/whoami")

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "UNAUTHORIZED"
        assert body["error"]
        assert "request_id" in body

    def test_non_admin_returns_403_envelope(self) -> None:
        client = build_client(FakeSessionClient(user=READER, role="user"))

        response = client.get("/api/whoami")

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "FORBIDDEN"
        assert body["details"] == {"required_role": "admin", "user_role": "user"}


class TestRateLimitMonitoring:
    def test_stats_for_admin(self, admin_client: TestClient) -> None:
        admin_client.get("/api/whoami", headers={"X-Forwarded-For": "203.0.113.5"})

        response = admin_client.get("/api/monitoring/rate-limits")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        for field in (
            "tracked_keys",
            "blocked_keys",
            "total_requests",
            "allowed_requests",
            "rejected_requests",
            "blocks_issued",
            "by_type",
            "top_clients",
            "timestamp",
            "server_time",
        ):
            assert field in data
        assert data["blocked_keys"] == 0
        assert "API_GENERAL" in data["by_type"]
        assert "GLOBAL_IP" in data["by_type"]

    def test_stats_forbidden_for_non_admin(self) -> None:
        client = build_client(FakeSessionClient(user=READER, role="user"))

        assert client.get("/api/monitoring/rate-limits").status_code == 403

    def test_admin_budget_rejects_before_gate(self, overrides) -> None:
        overrides["ADMIN"] = {"window_ms": 300_000, "max_requests": 2, "block_duration_ms": 300_000}
        session = FakeSessionClient(user=ADMIN, role="admin")
        client = build_client(session)

        assert client.get("/api/monitoring/rate-limits").status_code == 200
        assert client.get("/api/monitoring/rate-limits").status_code == 200
        rejected = client.get("/api/monitoring/rate-limits")

        assert rejected.status_code == 429
        assert rejected.json()["retryAfter"] == 300
        # Gate ran for the two accepted requests only
        assert session.calls == ["u1", "u1"]

    def test_reset_key_lifts_block(self, overrides) -> None:
        overrides["API_GENERAL"] = {"max_requests": 1}
        client = build_client(FakeSessionClient(user=ADMIN, role="admin"))

        assert client.get("/api/whoami").status_code == 200
        assert client.get("/api/whoami").status_code == 429

        response = client.delete("/api/monitoring/rate-limits/API_GENERAL:ip:testclient")

        assert response.status_code == 200
        assert response.json()["data"] == {"key": "API_GENERAL:ip:testclient", "reset": True}
        assert client.get("/api/whoami").status_code == 200

    def test_sessions_behind_one_ip_have_separate_budgets(self, overrides) -> None:
        overrides["API_GENERAL"] = {"max_requests": 1}
        client = build_client(FakeSessionClient(user=ADMIN, role="admin"))
        shared_ip = {"X-Forwarded-For": "9.9.9.9"}

        first = client.get("/api/whoami", headers={**shared_ip, "Authorization": "Bearer token-u1"})
        second = client.get("/api/whoami", headers={**shared_ip, "Authorization": "Bearer token-u2"})
        repeat = client.get("/api/whoami", headers={**shared_ip, "Authorization": "Bearer token-u1"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert repeat.status_code == 429

        by_type = client.get("/api/monitoring/rate-limits").json()["data"]["by_type"]
        assert by_type["API_GENERAL"] == {"keys": 2, "total_requests": 3}

    def test_reset_unknown_key_returns_404(self, admin_client: TestClient) -> None:
        response = admin_client.delete("/api/monitoring/rate-limits/SEARCH:ip:198.51.100.1")

        assert response.status_code == 404
        assert response.json()["code"] == "RESOURCE_NOT_FOUND"


class TestHealth:
    def test_liveness(self, admin_client: TestClient) -> None:
        response = admin_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_readiness_reports_backend(self, admin_client: TestClient) -> None:
        response = admin_client.get("/health", params={"type": "readiness"})

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert checks["backend_configured"] is True
        assert checks["rate_limiter"] == "InMemoryRateLimiter"

    def test_readiness_unavailable_without_backend(
        self, admin_client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(settings.backend, "url", None)

        response = admin_client.get("/health", params={"type": "readiness"})

        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"

    def test_security_headers_present(self, admin_client: TestClient) -> None:
        response = admin_client.get("/health")

        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
