from fastapi import FastAPI
from fastapi.testclient import TestClient

from campaign_api.api.middleware import CORRELATION_HEADER
from conftest import services_of
from campaign_api.config.models import Settings
from main import main as run_main
from main import parse_args as parse_server_args


def test_health_ok(client: TestClient) -> None:
    """Return status, breaker state and cache stats without auth."""
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["timestamp"]
    assert body["circuit_breaker"] == "CLOSED"
    assert body["circuit_breaker_stats"]["consecutive_failures"] == 0
    assert body["cache_stats"] == {"size": 0, "keys": []}


def test_health_reports_cache_keys(app: FastAPI, client: TestClient) -> None:
    """List live cache keys in the health payload."""
    services_of(app).cache.set("campaigns:page=1", {"items": []})

    body = client.get("/api/health").json()

    assert body["cache_stats"] == {"size": 1, "keys": ["campaigns:page=1"]}


def test_prometheus_metrics(client: TestClient) -> None:
    """Expose Prometheus text including the breaker gauge."""
    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert 'campaign_api_circuit_breaker_state{breaker="predictive_model"} 0.0' in response.text


def test_correlation_id_generated(client: TestClient) -> None:
    """Tag responses with a fresh correlation id."""
    first = client.get("/api/health").headers[CORRELATION_HEADER]
    second = client.get("/api/health").headers[CORRELATION_HEADER]

    assert first
    assert first != second


def test_correlation_id_echoed(client: TestClient) -> None:
    """Echo the caller's correlation id, also on error responses."""
    headers = {CORRELATION_HEADER: "req-123"}

    assert client.get("/api/health", headers=headers).headers[CORRELATION_HEADER] == "req-123"
    assert client.get("/api/campaigns", headers=headers).headers[CORRELATION_HEADER] == "req-123"


def test_lifespan_runs_sweeper(app: FastAPI) -> None:
    """Start the cache sweeper on startup and destroy the cache on shutdown."""
    cache = services_of(app).cache

    with TestClient(app):
        assert cache.is_sweeping
        cache.set("campaigns:page=1", {"items": []})

    assert not cache.is_sweeping
    assert cache.stats()["size"] == 0


def test_main_no_server() -> None:
    """Return success when main is called without starting the server."""
    assert run_main([], run_server=False) == 0


def test_server_args_default_to_settings() -> None:
    """Bind to the configured host and port unless overridden on the command line."""
    settings = Settings(host="0.0.0.0", port=9001)

    defaults = parse_server_args([], settings)
    custom = parse_server_args(["--host", "127.0.0.1", "--port", "8080"], settings)

    assert (defaults.host, defaults.port) == ("0.0.0.0", 9001)
    assert (custom.host, custom.port) == ("127.0.0.1", 8080)
