from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest
import sqlalchemy as sa
from fastapi import FastAPI
from fastapi.testclient import TestClient

from campaign_api.db.queries import create_campaign, create_metrics
from conftest import auth_headers, make_user, services_of


def _campaign_payload(**overrides: Any) -> dict[str, Any]:
    payload = {
        "name": "Spring Launch",
        "description": "Launch campaign",
        "status": "active",
        "channel": "email",
        "budget": "5000.00",
        "spent": "1200.50",
        "start_date": "2024-03-01T00:00:00Z",
        "end_date": "2024-04-01T00:00:00Z",
        "target_audience": "Women 25-34",
    }
    payload.update(overrides)
    return payload


def _insert_campaign(engine: sa.Engine, **overrides: Any) -> dict[str, Any]:
    values = {
        "name": "Seeded",
        "status": "active",
        "channel": "social",
        "budget": Decimal("1000.00"),
        "spent": Decimal("100.00"),
        "start_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return create_campaign(engine, values)


@pytest.fixture
def analyst(db_engine: sa.Engine) -> dict[str, Any]:
    return make_user(db_engine, "analyst")


@pytest.fixture
def viewer(db_engine: sa.Engine) -> dict[str, Any]:
    return make_user(db_engine, "viewer")


def test_list_requires_auth(client: TestClient) -> None:
    """Reject campaign reads without a token."""
    assert client.get("/api/campaigns").status_code == 401


def test_create_campaign(
    app: FastAPI, client: TestClient, analyst: dict[str, Any]
) -> None:
    """Create a campaign as analyst."""
    response = client.post(
        "/api/campaigns", json=_campaign_payload(), headers=auth_headers(app, analyst)
    )

    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Spring Launch"
    assert float(body["budget"]) == 5000.0
    assert body["created_by"] == str(analyst["id"])
    uuid.UUID(body["id"])


def test_viewer_cannot_write(app: FastAPI, client: TestClient, viewer: dict[str, Any]) -> None:
    """Forbid campaign writes for viewers."""
    response = client.post(
        "/api/campaigns", json=_campaign_payload(), headers=auth_headers(app, viewer)
    )

    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "RBAC_FORBIDDEN"


@pytest.mark.parametrize(
    "overrides",
    [
        {"channel": "radio"},
        {"status": "archived"},
        {"budget": "-1"},
        {"name": ""},
        {"end_date": "2024-02-01T00:00:00Z"},
    ],
)
def test_create_validation(
    app: FastAPI, client: TestClient, analyst: dict[str, Any], overrides: dict[str, Any]
) -> None:
    """Return 422 for invalid campaign payloads."""
    response = client.post(
        "/api/campaigns",
        json=_campaign_payload(**overrides),
        headers=auth_headers(app, analyst),
    )

    assert response.status_code == 422


def test_list_pagination_and_filters(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, viewer: dict[str, Any]
) -> None:
    """Page, filter and search campaigns."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index in range(12):
        _insert_campaign(
            db_engine,
            name=f"Campaign {index:02d}",
            channel="email" if index % 2 else "ppc",
            start_date=base + timedelta(days=index),
        )
    headers = auth_headers(app, viewer)

    first = client.get("/api/campaigns", params={"limit": 5}, headers=headers).json()
    assert first["total"] == 12
    assert first["total_pages"] == 3
    assert first["page"] == 1
    assert [item["name"] for item in first["items"]][:2] == ["Campaign 11", "Campaign 10"]

    last = client.get("/api/campaigns", params={"limit": 5, "page": 3}, headers=headers).json()
    assert len(last["items"]) == 2

    email = client.get("/api/campaigns", params={"channel": "email"}, headers=headers).json()
    assert email["total"] == 6

    everything = client.get("/api/campaigns", params={"channel": "all"}, headers=headers).json()
    assert everything["total"] == 12

    search = client.get("/api/campaigns", params={"search": "paign 03"}, headers=headers).json()
    assert [item["name"] for item in search["items"]] == ["Campaign 03"]

    ascending = client.get(
        "/api/campaigns",
        params={"sort_by": "name", "sort_order": "asc", "limit": 1},
        headers=headers,
    ).json()
    assert ascending["items"][0]["name"] == "Campaign 00"


def test_list_rejects_bad_params(app: FastAPI, client: TestClient, viewer: dict[str, Any]) -> None:
    """Validate limit and sort field."""
    headers = auth_headers(app, viewer)

    assert client.get("/api/campaigns", params={"limit": 101}, headers=headers).status_code == 422
    assert (
        client.get("/api/campaigns", params={"sort_by": "password"}, headers=headers).status_code
        == 422
    )


def test_list_is_cached_until_write(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, analyst: dict[str, Any]
) -> None:
    """Serve repeated reads from the cache and bust it on create."""
    headers = auth_headers(app, analyst)
    _insert_campaign(db_engine, name="Cached One")

    assert client.get("/api/campaigns", headers=headers).json()["total"] == 1

    # Inserted behind the API's back: the cached page is still served.
    _insert_campaign(db_engine, name="Hidden Two")
    assert client.get("/api/campaigns", headers=headers).json()["total"] == 1
    keys = services_of(app).cache.stats()["keys"]
    assert any(key.startswith("campaigns:") for key in keys)

    client.post("/api/campaigns", json=_campaign_payload(), headers=headers)

    assert client.get("/api/campaigns", headers=headers).json()["total"] == 3


def test_get_campaign(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, viewer: dict[str, Any]
) -> None:
    """Return one campaign and cache it under its id."""
    row = _insert_campaign(db_engine, name="Single")

    response = client.get(f"/api/campaigns/{row['id']}", headers=auth_headers(app, viewer))

    assert response.status_code == 200
    assert response.json()["name"] == "Single"
    assert f"campaign:{row['id']}" in services_of(app).cache.stats()["keys"]


@pytest.mark.parametrize("campaign_id", [str(uuid.uuid4()), "not-a-uuid"])
def test_get_campaign_not_found(
    app: FastAPI, client: TestClient, viewer: dict[str, Any], campaign_id: str
) -> None:
    """Return 404 for unknown or malformed ids without caching the miss."""
    response = client.get(f"/api/campaigns/{campaign_id}", headers=auth_headers(app, viewer))

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT_FOUND"
    assert services_of(app).cache.stats()["size"] == 0


def test_update_campaign_busts_detail_cache(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, analyst: dict[str, Any]
) -> None:
    """Apply a partial update and serve the fresh value afterwards."""
    row = _insert_campaign(db_engine, name="Before")
    headers = auth_headers(app, analyst)
    client.get(f"/api/campaigns/{row['id']}", headers=headers)

    response = client.patch(
        f"/api/campaigns/{row['id']}",
        json={"name": "After", "status": "paused"},
        headers=headers,
    )

    assert response.status_code == 200
    assert response.json()["name"] == "After"
    assert response.json()["channel"] == "social"
    detail = client.get(f"/api/campaigns/{row['id']}", headers=headers).json()
    assert detail["name"] == "After"
    assert detail["status"] == "paused"



def test_empty_update_keeps_cache(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, analyst: dict[str, Any]
) -> None:
    """Return the stored row for an empty patch without dropping cached reads."""
    row = _insert_campaign(db_engine, name="Unchanged")
    headers = auth_headers(app, analyst)
    client.get("/api/campaigns", headers=headers)
    client.get(f"/api/campaigns/{row['id']}", headers=headers)
    cached = services_of(app).cache.stats()["keys"]

    response = client.patch(f"/api/campaigns/{row['id']}", json={}, headers=headers)

    assert response.status_code == 200
    assert response.json()["name"] == "Unchanged"
    assert services_of(app).cache.stats()["keys"] == cached
    assert any(key.startswith("campaigns:") for key in cached)


def test_update_missing_campaign(app: FastAPI, client: TestClient, analyst: dict[str, Any]) -> None:
    """Return 404 when updating an unknown campaign."""
    response = client.patch(
        f"/api/campaigns/{uuid.uuid4()}",
        json={"name": "Ghost"},
        headers=auth_headers(app, analyst),
    )

    assert response.status_code == 404


def test_delete_campaign(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, analyst: dict[str, Any]
) -> None:
    """Delete a campaign, then 404 on read and on second delete."""
    row = _insert_campaign(db_engine)
    headers = auth_headers(app, analyst)
    client.get(f"/api/campaigns/{row['id']}", headers=headers)

    response = client.delete(f"/api/campaigns/{row['id']}", headers=headers)

    assert response.status_code == 204
    assert client.get(f"/api/campaigns/{row['id']}", headers=headers).status_code == 404
    assert client.delete(f"/api/campaigns/{row['id']}", headers=headers).status_code == 404


def test_campaign_metrics(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, viewer: dict[str, Any]
) -> None:
    """Return a campaign's daily metrics newest first, within date bounds."""
    row = _insert_campaign(db_engine)
    other = _insert_campaign(db_engine, name="Other")
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    create_metrics(
        db_engine,
        [
            {
                "campaign_id": campaign["id"],
                "date": base + timedelta(days=day),
                "impressions": 1000,
                "clicks": 50,
                "conversions": 5,
                "revenue": Decimal("500.00"),
                "cost": Decimal("100.00"),
            }
            for campaign in (row, other)
            for day in range(5)
        ],
    )
    headers = auth_headers(app, viewer)

    response = client.get(f"/api/campaigns/{row['id']}/metrics", headers=headers)
    assert response.status_code == 200
    items = response.json()
    assert len(items) == 5
    assert {item["campaign_id"] for item in items} == {str(row["id"])}
    assert items[0]["date"] > items[-1]["date"]

    bounded = client.get(
        "/api/metrics",
        params={"start_date": "2024-01-02T00:00:00", "end_date": "2024-01-03T00:00:00"},
        headers=headers,
    ).json()
    assert len(bounded) == 4

    missing = client.get(f"/api/campaigns/{uuid.uuid4()}/metrics", headers=headers)
    assert missing.status_code == 404


def test_cache_hits_are_counted(
    app: FastAPI, client: TestClient, db_engine: sa.Engine, viewer: dict[str, Any]
) -> None:
    """Record cache hits and misses in Prometheus metrics."""
    headers = auth_headers(app, viewer)
    client.get("/api/campaigns", headers=headers)
    client.get("/api/campaigns", headers=headers)

    registry = services_of(app).metrics.registry
    labels = {"resource": "campaigns"}
    assert registry.get_sample_value(
        "campaign_api_cache_lookups_total", {**labels, "result": "miss"}
    ) == 1.0
    assert registry.get_sample_value(
        "campaign_api_cache_lookups_total", {**labels, "result": "hit"}
    ) == 1.0
