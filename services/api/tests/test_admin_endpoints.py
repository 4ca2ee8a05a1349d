from __future__ import annotations

import inspect
from typing import Any

import pytest
import sqlalchemy as sa
from fastapi import FastAPI
from fastapi.testclient import TestClient

from campaign_api.api import admin as admin_routes
from campaign_api.api import health as health_routes
from conftest import auth_headers, make_user, services_of


@pytest.fixture
def admin(db_engine: sa.Engine) -> dict[str, Any]:
    return make_user(db_engine, "admin")


class TestBreakerOverrides:
    def test_force_open_and_close(
        self, app: FastAPI, client: TestClient, admin: dict[str, Any]
    ) -> None:
        """Open and close the model breaker on demand."""
        headers = auth_headers(app, admin)

        opened = client.post("/api/admin/circuit-breaker/open", headers=headers)
        assert opened.status_code == 200
        assert opened.json()["state"] == "OPEN"
        assert client.get("/api/health").json()["circuit_breaker"] == "OPEN"

        closed = client.post("/api/admin/circuit-breaker/close", headers=headers)
        assert closed.json() == {
            "state": "CLOSED",
            "consecutive_failures": 0,
            "consecutive_successes": 0,
            "last_failure_at": None,
        }
        assert services_of(app).breaker.get_state().value == "CLOSED"

    def test_breaker_routes_run_on_event_loop(self) -> None:
        """Mutate and read the breaker from coroutines, never from a worker thread."""
        assert inspect.iscoroutinefunction(admin_routes.open_breaker)
        assert inspect.iscoroutinefunction(admin_routes.close_breaker)
        assert inspect.iscoroutinefunction(health_routes.health)

    @pytest.mark.asyncio
    async def test_force_close_after_failures_resets_counters(
        self, app: FastAPI, client: TestClient, admin: dict[str, Any]
    ) -> None:
        """Leave no failure count behind when an admin closes a tripped breaker."""
        breaker = services_of(app).breaker

        async def _fail() -> None:
            raise ConnectionError("model unreachable")

        for _ in range(breaker.config.failure_threshold):
            with pytest.raises(ConnectionError):
                await breaker.execute(_fail)
        assert breaker.get_state().value == "OPEN"

        closed = client.post("/api/admin/circuit-breaker/close", headers=auth_headers(app, admin))

        assert closed.json()["state"] == "CLOSED"
        assert closed.json()["consecutive_failures"] == 0
        health = client.get("/api/health").json()
        assert health["circuit_breaker"] == health["circuit_breaker_stats"]["state"] == "CLOSED"

    @pytest.mark.parametrize("role", ["analyst", "viewer"])
    def test_non_admin_forbidden(
        self, app: FastAPI, client: TestClient, db_engine: sa.Engine, role: str
    ) -> None:
        """Restrict breaker overrides to admins."""
        user = make_user(db_engine, role)

        response = client.post(
            "/api/admin/circuit-breaker/open", headers=auth_headers(app, user)
        )

        assert response.status_code == 403
        assert services_of(app).breaker.get_state().value == "CLOSED"


class TestCacheAdmin:
    def test_clear_everything(
        self, app: FastAPI, client: TestClient, admin: dict[str, Any]
    ) -> None:
        """Drop every cache entry when no pattern is given."""
        cache = services_of(app).cache
        cache.set("campaigns:page=1", {"items": []})
        cache.set("forecasts:", [])

        response = client.delete("/api/admin/cache", headers=auth_headers(app, admin))

        assert response.json() == {"removed": 2, "pattern": None}
        assert cache.stats()["size"] == 0

    def test_clear_by_pattern(
        self, app: FastAPI, client: TestClient, admin: dict[str, Any]
    ) -> None:
        """Drop only entries whose key matches the pattern."""
        cache = services_of(app).cache
        cache.set("campaigns:page=1", {"items": []})
        cache.set("campaigns:page=2", {"items": []})
        cache.set("forecasts:", [])

        response = client.delete(
            "/api/admin/cache", params={"pattern": "^campaigns:"}, headers=auth_headers(app, admin)
        )

        assert response.json() == {"removed": 2, "pattern": "^campaigns:"}
        assert cache.stats()["keys"] == ["forecasts:"]

    def test_invalid_pattern(
        self, app: FastAPI, client: TestClient, admin: dict[str, Any]
    ) -> None:
        """Reject patterns that are not valid regular expressions."""
        response = client.delete(
            "/api/admin/cache", params={"pattern": "campaigns:("}, headers=auth_headers(app, admin)
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_PATTERN"

    def test_requires_auth(self, client: TestClient) -> None:
        """Reject anonymous cache administration."""
        assert client.delete("/api/admin/cache").status_code == 401
