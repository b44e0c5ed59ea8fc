"""
Tests for free reservations, check-in and reservation listings.
"""

import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers_for, fetch_reservation
from reservation_api.services.capacity import active_count


@pytest.mark.asyncio
async def test_reserve_free_event(client: AsyncClient, make_event, test_user, auth_headers):
    """Free reservations are confirmed immediately and never paid."""
    event = await make_event(price=0, capacity=10)

    response = await client.post("/api/v1/reservations/", json={"event_id": event.id}, headers=auth_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["user_id"] == test_user.id
    assert data["event_id"] == event.id
    assert data["status"] == "confirmed"
    assert data["payment_status"] == "unpaid"
    assert data["amount"] == 0


@pytest.mark.asyncio
async def test_last_seat_goes_to_first_caller(client: AsyncClient, db_session, make_event, auth_headers, other_headers):
    """With one seat left, the second reservation is refused and the count stays at capacity."""
    event = await make_event(price=0, capacity=1)
    event_id = event.id

    first = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)
    second = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=other_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["code"] == "capacity_exceeded"
    assert await active_count(db_session, event_id) == 1


@pytest.mark.asyncio
async def test_capacity_never_exceeded(client: AsyncClient, db_session, make_event, make_user):
    """More callers than seats: exactly `capacity` succeed."""
    event = await make_event(price=0, capacity=3)
    event_id = event.id
    headers = [auth_headers_for(await make_user()) for _ in range(5)]

    statuses = []
    for h in headers:
        response = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=h)
        statuses.append(response.status_code)

    assert statuses.count(201) == 3
    assert statuses.count(409) == 2
    assert await active_count(db_session, event_id) == 3


@pytest.mark.asyncio
async def test_unlimited_event_accepts_everyone(client: AsyncClient, make_event, make_user):
    event = await make_event(price=0, capacity=0)
    event_id = event.id
    for _ in range(4):
        response = await client.post(
            "/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers_for(await make_user())
        )
        assert response.status_code == 201


@pytest.mark.asyncio
async def test_duplicate_reservation(client: AsyncClient, db_session, make_event, auth_headers):
    """The same user cannot hold two active reservations for one event."""
    event = await make_event(price=0, capacity=10)
    event_id = event.id

    first = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)
    second = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["code"] == "duplicate_reservation"
    assert await active_count(db_session, event_id) == 1


@pytest.mark.asyncio
async def test_full_event_reported_before_duplicate(client: AsyncClient, db_session, make_event, auth_headers):
    """A user who already holds the only seat is told the event is full."""
    event = await make_event(price=0, capacity=1)
    event_id = event.id

    await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)
    response = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "capacity_exceeded"
    assert await active_count(db_session, event_id) == 1


@pytest.mark.asyncio
async def test_reserve_again_after_cancel(client: AsyncClient, make_event, auth_headers):
    """Cancelled reservations do not block a new one for the same event."""
    event = await make_event(price=0, capacity=10)
    event_id = event.id

    first = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)
    cancel = await client.post(f"/api/v1/reservations/{first.json()['id']}/cancel", headers=auth_headers)
    again = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)

    assert cancel.status_code == 200
    assert again.status_code == 201
    assert again.json()["id"] != first.json()["id"]


@pytest.mark.asyncio
async def test_cancel_frees_the_seat(client: AsyncClient, make_event, auth_headers, other_headers):
    """After a cancellation, a full event accepts the next caller."""
    event = await make_event(price=0, capacity=1)
    event_id = event.id

    first = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=auth_headers)
    await client.post(f"/api/v1/reservations/{first.json()['id']}/cancel", headers=auth_headers)
    response = await client.post("/api/v1/reservations/", json={"event_id": event_id}, headers=other_headers)
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_reserve_paid_event_without_checkout(client: AsyncClient, make_event, auth_headers):
    """Paid events must go through checkout."""
    event = await make_event(price=3000)
    response = await client.post("/api/v1/reservations/", json={"event_id": event.id}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "pricing_mismatch"


@pytest.mark.asyncio
async def test_reserve_unpublished_event(client: AsyncClient, make_event, auth_headers):
    event = await make_event(is_published=False)
    response = await client.post("/api/v1/reservations/", json={"event_id": event.id}, headers=auth_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "not_published"


@pytest.mark.asyncio
async def test_reserve_nonexistent_event(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/reservations/", json={"event_id": 99999}, headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reserve_unauthenticated(client: AsyncClient, make_event):
    event = await make_event()
    response = await client.post("/api/v1/reservations/", json={"event_id": event.id})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_free_reservation_sends_no_email_by_default(client: AsyncClient, make_event, auth_headers, dispatcher, notifier):
    event = await make_event(price=0)
    await client.post("/api/v1/reservations/", json={"event_id": event.id}, headers=auth_headers)
    await dispatcher.drain()
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_list_my_reservations(client: AsyncClient, make_event, make_reservation, test_user, other_user, auth_headers):
    """Users only see their own reservations, with event details, newest first."""
    first_event = await make_event(title="First")
    second_event = await make_event(title="Second")
    older = await make_reservation(test_user, first_event)
    newer = await make_reservation(test_user, second_event, status="cancelled")
    await make_reservation(other_user, first_event)

    response = await client.get("/api/v1/reservations/", headers=auth_headers)
    assert response.status_code == 200
    data = response.json()
    assert [r["id"] for r in data] == [newer.id, older.id]
    assert data[0]["event"]["title"] == "Second"
    assert data[0]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_list_my_reservations_for_event(client: AsyncClient, make_event, make_reservation, test_user, auth_headers):
    first_event = await make_event()
    second_event = await make_event()
    await make_reservation(test_user, first_event)
    wanted = await make_reservation(test_user, second_event)

    response = await client.get(f"/api/v1/reservations/?event_id={second_event.id}", headers=auth_headers)
    assert [r["id"] for r in response.json()] == [wanted.id]


@pytest.mark.asyncio
async def test_check_in(client: AsyncClient, make_event, make_reservation, test_user, admin_headers):
    """Organizer checks a confirmed reservation in."""
    event = await make_event()
    reservation = await make_reservation(test_user, event, status="confirmed")

    response = await client.post(f"/api/v1/reservations/{reservation.id}/checkin", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["reservation"]["status"] == "checked_in"
    assert data["reservation"]["checked_in_at"] is not None


@pytest.mark.asyncio
async def test_check_in_requires_organizer(client: AsyncClient, make_event, make_reservation, test_user, auth_headers):
    """Users cannot check themselves in."""
    event = await make_event()
    reservation = await make_reservation(test_user, event)
    response = await client.post(f"/api/v1/reservations/{reservation.id}/checkin", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_check_in_twice(client: AsyncClient, make_event, make_reservation, test_user, admin_headers):
    event = await make_event()
    reservation = await make_reservation(test_user, event, status="checked_in")
    response = await client.post(f"/api/v1/reservations/{reservation.id}/checkin", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "already_checked_in"


@pytest.mark.asyncio
async def test_check_in_cancelled(client: AsyncClient, make_event, make_reservation, test_user, admin_headers):
    event = await make_event()
    reservation = await make_reservation(test_user, event, status="cancelled")
    response = await client.post(f"/api/v1/reservations/{reservation.id}/checkin", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["code"] == "already_cancelled"


@pytest.mark.asyncio
async def test_check_in_nonexistent(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/reservations/99999/checkin", headers=admin_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_check_in_pending(client: AsyncClient, db_session, make_event, make_reservation, test_user, admin_headers):
    """A pending reservation can be checked in; payment status is untouched."""
    event = await make_event(price=2000)
    reservation = await make_reservation(test_user, event, status="pending", amount=2000)
    reservation_id = reservation.id

    response = await client.post(f"/api/v1/reservations/{reservation_id}/checkin", headers=admin_headers)
    assert response.status_code == 200

    stored = await fetch_reservation(db_session, reservation_id)
    assert stored.status == "checked_in"
    assert stored.payment_status == "unpaid"


@pytest.mark.asyncio
async def test_admin_lists_all_reservations(client: AsyncClient, make_event, make_reservation, test_user, other_user, admin_headers):
    event = await make_event()
    other_event = await make_event()
    mine = await make_reservation(test_user, event)
    theirs = await make_reservation(other_user, event)
    await make_reservation(other_user, other_event)

    response = await client.get(f"/api/v1/admin/reservations?event_id={event.id}", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    assert {r["id"] for r in data} == {mine.id, theirs.id}
    assert {r["user"]["display_name"] for r in data} == {"Taro", "Hanako"}

    response = await client.get("/api/v1/admin/reservations", headers=admin_headers)
    assert len(response.json()) == 3


@pytest.mark.asyncio
async def test_admin_list_requires_organizer(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/admin/reservations", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_stats(client: AsyncClient, make_event, make_reservation, test_user, other_user, admin_headers, auth_headers):
    event = await make_event()
    await make_event(is_published=False)
    await make_reservation(test_user, event, status="confirmed")
    await make_reservation(other_user, event, status="cancelled")

    response = await client.get("/api/v1/admin/stats", headers=admin_headers)
    assert response.status_code == 200
    # test_user, other_user and the organizer
    assert response.json() == {"events": 2, "active_reservations": 1, "users": 3}

    assert (await client.get("/api/v1/admin/stats", headers=auth_headers)).status_code == 403
