"""
Tests for health, metrics and request correlation.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    """An upstream request id is kept; otherwise one is assigned."""
    response = await client.get("/health", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"

    response = await client.get("/health")
    assert len(response.headers["X-Request-ID"]) == 8
    assert response.headers["X-Response-Time"].endswith("ms")


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient, participant_headers, published_event):
    await client.post("/api/v1/registrations/", json={"event_id": published_event.id}, headers=participant_headers)

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "registration_attempts_total" in response.text


@pytest.mark.asyncio
async def test_malformed_body(client: AsyncClient, participant_headers):
    response = await client.post(
        "/api/v1/registrations/",
        content="not json at all",
        headers={**participant_headers, "Content-Type": "application/json"},
    )
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["retryable"] is False
    assert body["details"]
