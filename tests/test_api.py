from datetime import datetime, timezone

import pytest

from checkin_api.db.database import Base
from checkin_api.db.queries import insert_checkin, insert_quotes


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
@pytest.mark.parametrize("path, methods", [
    ("/api/checkins", "POST,OPTIONS"),
    ("/api/stats", "GET,OPTIONS"),
    ("/api/timeseries", "GET,OPTIONS"),
])
async def test_options_returns_cors_headers(async_client, path, methods):
    response = await async_client.options(path)

    assert response.status_code == 200
    assert response.content == b""
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == methods
    assert response.headers["access-control-allow-headers"] == "Content-Type,Authorization"


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer wrong"}, {"Authorization": "test-token"}])
async def test_requests_without_valid_token_are_rejected(async_client, headers):
    for method, path in [("POST", "/api/checkins"), ("GET", "/api/stats"), ("GET", "/api/timeseries")]:
        response = await async_client.request(method, path, headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}
        assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_auth_checked_before_validation(async_client):
    response = await async_client.post("/api/checkins", content=b"{not json")
    assert response.status_code == 401

    response = await async_client.get("/api/timeseries?bucket=week")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_empty_server_token_rejects_everything(app, async_client):
    app.state.settings.api_token = ""

    response = await async_client.get("/api/stats", headers={"Authorization": "Bearer "})

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_method_is_405(async_client, auth_headers):
    response = await async_client.get("/api/checkins", headers=auth_headers)
    assert response.status_code == 405
    assert "error" in response.json()

    response = await async_client.post("/api/stats", headers=auth_headers, json={})
    assert response.status_code == 405
    assert response.headers["access-control-allow-methods"] == "GET,OPTIONS"


@pytest.mark.asyncio
async def test_ingest_then_stats(async_client, auth_headers):
    response = await async_client.post("/api/checkins", headers=auth_headers, json={"name": "  Alice  "})

    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["name"] == "Alice"
    assert data["quote"] is None
    created = datetime.fromisoformat(data["created_at_utc"].replace("Z", "+00:00"))
    assert abs((datetime.now(timezone.utc) - created).total_seconds()) < 60
    assert data["created_at_nz"] != data["created_at_utc"]

    response = await async_client.get("/api/stats", headers=auth_headers)

    assert response.status_code == 200
    stats = response.json()
    assert stats["all_time_total"] >= 1
    assert stats["range_total"] >= 1
    assert stats["recent"][0]["name"] == "Alice"
    assert stats["recent"][0]["created_at_utc"] == data["created_at_utc"]
    assert set(stats["range"]) == {"from_utc", "to_utc", "from_nz", "to_nz"}


@pytest.mark.asyncio
async def test_ingest_returns_stored_quote(async_client, auth_headers, session):
    await insert_quotes(session, ["Keep going."])

    response = await async_client.post("/api/checkins", headers=auth_headers, json={"name": "Bob"})

    assert response.status_code == 200
    assert response.json()["quote"] == "Keep going."


@pytest.mark.asyncio
@pytest.mark.parametrize("body, error", [
    (b"{not json", "Invalid JSON body"),
    (b"", "Invalid JSON body"),
    (b"{}", "Missing name"),
    (b'{"name": "   "}', "Missing name"),
    (b'{"name": null}', "Missing name"),
    (b'["Alice"]', "Missing name"),
    (('{"name": "%s"}' % ("x" * 81)).encode(), "Name too long"),
])
async def test_ingest_validation(async_client, auth_headers, body, error):
    response = await async_client.post(
        "/api/checkins",
        headers={**auth_headers, "Content-Type": "application/json"},
        content=body
    )

    assert response.status_code == 400
    assert response.json() == {"error": error}
    assert response.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_ingest_accepts_max_length_name(async_client, auth_headers):
    response = await async_client.post("/api/checkins", headers=auth_headers, json={"name": "y" * 80})

    assert response.status_code == 200
    assert response.json()["name"] == "y" * 80


@pytest.mark.asyncio
async def test_stats_with_explicit_range(async_client, auth_headers, session):
    await insert_checkin(session, "a", created_at=datetime(2024, 1, 15, 10, tzinfo=timezone.utc))
    await insert_checkin(session, "b", created_at=datetime(2024, 2, 15, 10, tzinfo=timezone.utc))

    response = await async_client.get(
        "/api/stats",
        headers=auth_headers,
        params={"from": "2024-01-01T00:00:00Z", "to": "2024-01-31T00:00:00Z"}
    )

    assert response.status_code == 200
    stats = response.json()
    assert stats["all_time_total"] == 2
    assert stats["range_total"] == 1
    assert stats["range_per_name"] == [{"name": "a", "count": 1}]
    assert stats["range"]["from_utc"] == "2024-01-01T00:00:00.000Z"


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/stats", "/api/timeseries"])
async def test_equal_bounds_are_invalid_range(async_client, auth_headers, path):
    response = await async_client.get(
        path,
        headers=auth_headers,
        params={"from": "2024-01-01T00:00:00Z", "to": "2024-01-01T00:00:00Z"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid from/to"}


@pytest.mark.asyncio
async def test_invalid_window_is_ignored(async_client, auth_headers):
    response = await async_client.get("/api/stats", headers=auth_headers, params={"window": "abc"})

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unknown_bucket_rejected(async_client, auth_headers):
    response = await async_client.get("/api/timeseries", headers=auth_headers, params={"bucket": "week"})

    assert response.status_code == 400
    assert response.json() == {"error": "bucket must be hour or day"}


@pytest.mark.asyncio
async def test_timeseries_shape(async_client, auth_headers, session):
    await insert_checkin(session, "a", created_at=datetime(2024, 1, 15, 14, 37, 22, tzinfo=timezone.utc))
    await insert_checkin(session, "a", created_at=datetime(2024, 1, 15, 14, 5, tzinfo=timezone.utc))
    await insert_checkin(session, "b", created_at=datetime(2024, 1, 16, 1, tzinfo=timezone.utc))

    response = await async_client.get(
        "/api/timeseries",
        headers=auth_headers,
        params={"bucket": "DAY", "from": "2024-01-15T00:00:00Z", "to": "2024-01-17T00:00:00Z"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["bucket"] == "day"
    assert data["range"]["to_utc"] == "2024-01-17T00:00:00.000Z"
    assert data["top_names"] == ["a", "b"]
    assert data["total"] == [
        {"bucket_utc": "2024-01-15T00:00:00Z", "label_nz": "15/01/2024", "count": 2},
        {"bucket_utc": "2024-01-16T00:00:00Z", "label_nz": "16/01/2024", "count": 1},
    ]
    assert data["by_name"] == [
        {"name": "a", "bucket_utc": "2024-01-15T00:00:00Z", "count": 2},
        {"name": "b", "bucket_utc": "2024-01-16T00:00:00Z", "count": 1},
    ]


@pytest.mark.asyncio
async def test_timeseries_defaults_to_hour(async_client, auth_headers):
    response = await async_client.get("/api/timeseries", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["bucket"] == "hour"


@pytest.mark.asyncio
async def test_store_failure_reported(app, async_client, auth_headers):
    async with app.state.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    response = await async_client.get("/api/timeseries", headers=auth_headers)
    assert response.status_code == 500
    data = response.json()
    assert data["error"] == "timeseries_failed"
    assert "checkin_events" in data["message"]

    response = await async_client.get("/api/stats", headers=auth_headers)
    assert response.status_code == 500
    assert response.json() == {"error": "Query failed"}

    response = await async_client.post("/api/checkins", headers=auth_headers, json={"name": "Alice"})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to record check-in"}


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/stats", "/api/timeseries"])
async def test_oversized_window_falls_back_to_default(async_client, auth_headers, path):
    response = await async_client.get(path, headers=auth_headers, params={"window": "9" * 5000 + "h"})

    assert response.status_code == 200
    data = response.json()
    assert data["range"]["from_utc"] < data["range"]["to_utc"]
