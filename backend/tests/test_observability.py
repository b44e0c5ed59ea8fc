"""
Tests for request correlation, metrics exposure and log redaction.
"""

import pytest
from httpx import AsyncClient

from reservation_api.core.logging import redact_credentials


def test_redact_credentials():
    event = redact_credentials(None, "info", {
        "event": "line_login",
        "id_token": "eyJhbGciOi...",
        "stripe_signature": "t=1,v1=abc",
        "reservation_id": 4,
    })
    assert event["id_token"] == "[redacted]"
    assert event["stripe_signature"] == "[redacted]"
    assert event["reservation_id"] == 4


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "liff-1234"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "liff-1234"
    assert response.headers["X-Response-Time"].endswith("ms")


@pytest.mark.asyncio
async def test_request_id_is_assigned(client: AsyncClient):
    response = await client.get("/")
    assert len(response.headers["X-Request-ID"]) == 8


@pytest.mark.asyncio
async def test_health_without_redis(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_use_route_templates(client: AsyncClient, make_event, make_reservation, test_user, admin_headers):
    event = await make_event()
    reservation = await make_reservation(test_user, event)
    await client.post(f"/api/v1/reservations/{reservation.id}/checkin", headers=admin_headers)

    response = await client.get("/metrics")
    assert response.status_code == 200
    body = response.text
    assert 'route="/api/v1/reservations/{reservation_id}/checkin"' in body
    assert "reservation_transitions_total" in body
