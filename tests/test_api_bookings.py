from datetime import time
from decimal import Decimal

from roombooking.core.context import Role
from roombooking.db import models


def seed_room(SessionLocal, name="Studio A", price="300", status=models.RoomStatus.available):
    with SessionLocal() as db:
        room = models.Room(
            name=name,
            capacity=4,
            price_per_hour=Decimal(price),
            open_time=time(0, 0),
            close_time=time(0, 0),
            amenities=[],
            status=status,
        )
        db.add(room)
        db.commit()
        return room.id


def book(client, room_id, start="2030-01-15T10:00:00Z", end="2030-01-15T11:00:00Z", **extra):
    return client.post(
        "/api/v1/bookings",
        json={"room_id": room_id, "start_time": start, "end_time": end, **extra},
    )


def test_create_booking_returns_price_and_room(api_client):
    client, SessionLocal, _ = api_client
    room_id = seed_room(SessionLocal)

    response = book(client, room_id, duration_hours=1)

    assert response.status_code == 201
    body = response.json()
    assert body["total_price"] == 300.0
    assert body["status"] == "active"
    assert body["payment_status"] == "pending"
    assert body["room_name"] == "Studio A"
    assert body["price_per_hour"] == 300.0
    assert body["requester_id"] == 101


def test_overlap_returns_conflict_details(api_client):
    client, SessionLocal, act_as = api_client
    room_id = seed_room(SessionLocal)
    first = book(client, room_id, "2030-01-15T14:00:00Z", "2030-01-15T16:00:00Z").json()

    act_as(202)
    response = book(client, room_id, "2030-01-15T15:00:00Z", "2030-01-15T17:00:00Z")

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["next_available"].startswith("2030-01-15T16:00:00")
    assert detail["conflicts"][0]["booking_id"] == first["id"]
    assert "already booked" in detail["message"]


def test_create_booking_errors(api_client):
    client, SessionLocal, _ = api_client
    room_id = seed_room(SessionLocal)
    closed_id = seed_room(SessionLocal, name="Closed", status=models.RoomStatus.maintenance)

    assert book(client, room_id, "2030-01-15T11:00:00Z", "2030-01-15T10:00:00Z").status_code == 400
    assert book(client, room_id, duration_hours=2).status_code == 400
    assert book(client, 999).status_code == 404
    assert book(client, room_id, requester_id=55).status_code == 403
    assert book(client, closed_id).status_code == 409


def test_listing_is_scoped_to_requester(api_client):
    client, SessionLocal, act_as = api_client
    room_id = seed_room(SessionLocal)
    mine = book(client, room_id).json()
    act_as(202)
    theirs = book(client, room_id, "2030-01-15T12:00:00Z", "2030-01-15T13:00:00Z").json()

    assert [b["id"] for b in client.get("/api/v1/bookings", params={"requester_id": 101}).json()] == [theirs["id"]]
    assert client.get(f"/api/v1/bookings/{mine['id']}").status_code == 403

    act_as(1, Role.admin)
    assert len(client.get("/api/v1/bookings").json()) == 2
    filtered = client.get("/api/v1/bookings", params={"requester_id": 101}).json()
    assert [b["id"] for b in filtered] == [mine["id"]]
    assert client.get("/api/v1/bookings", params={"status": "bogus"}).status_code == 400


def test_cancel_twice_returns_conflict(api_client):
    client, SessionLocal, act_as = api_client
    room_id = seed_room(SessionLocal)
    booking = book(client, room_id).json()

    act_as(202)
    assert client.post(f"/api/v1/bookings/{booking['id']}/cancel").status_code == 403

    act_as(101)
    first = client.post(f"/api/v1/bookings/{booking['id']}/cancel", json={"reason": "sick"})
    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    second = client.post(f"/api/v1/bookings/{booking['id']}/cancel")
    assert second.status_code == 409
    assert "already cancelled" in second.json()["detail"]


def test_admin_booking_operations(api_client):
    client, SessionLocal, act_as = api_client
    room_id = seed_room(SessionLocal)
    booking = book(client, room_id).json()
    url = f"/api/v1/bookings/{booking['id']}"

    assert client.patch(f"{url}/status", json={"status": "completed"}).status_code == 403
    assert client.get("/api/v1/bookings/flagged").status_code == 403

    act_as(1, Role.admin)
    assert client.patch(f"{url}/payment-status", json={"payment_status": "settled"}).status_code == 400
    paid = client.patch(f"{url}/payment-status", json={"payment_status": "paid"})
    assert paid.json()["payment_status"] == "paid"
    price = client.patch(f"{url}/price", json={"total_price": 250})
    assert price.json()["total_price"] == 250.0

    assert client.delete(url).status_code == 409
    assert client.post(f"{url}/cancel").status_code == 200
    assert [b["id"] for b in client.get("/api/v1/bookings/flagged").json()] == [booking["id"]]
    assert client.patch(f"{url}/status", json={"status": "active"}).status_code == 409
    assert client.delete(url).status_code == 409
    client.patch(f"{url}/payment-status", json={"payment_status": "refunded"})
    assert client.delete(url).status_code == 204
    assert client.get(url).status_code == 404


def test_stats(api_client):
    client, SessionLocal, act_as = api_client
    room_id = seed_room(SessionLocal, price="200")
    booking = book(client, room_id, "2030-01-15T10:00:00Z", "2030-01-15T12:00:00Z").json()
    book(client, room_id, "2030-01-15T13:00:00Z", "2030-01-15T14:00:00Z")
    act_as(1, Role.admin)
    client.patch(f"/api/v1/bookings/{booking['id']}/payment-status", json={"payment_status": "paid"})

    stats = client.get("/api/v1/bookings/stats", params={"requester_id": 101}).json()
    assert stats["total_bookings"] == 2
    assert stats["total_spent"] == 400.0
    assert stats["active_bookings"] == 2

    act_as(101)
    assert client.get("/api/v1/bookings/stats").json()["total_bookings"] == 2
