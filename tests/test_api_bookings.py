"""
HTTP surface: routes, authorization and the {"success": false, ...} error shape.
"""

import time
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api.deps import build_services
from app.core.security import create_access_token
from app.main import app
from app.services.events import RestaurantRoomPublisher
from tests.conftest import booking_request, make_booking, make_restaurant

API = "/api/v1"


def auth(user_id=None, role="user", restaurant_id=None):
    token = create_access_token(str(user_id or uuid4()), role=role, restaurant_id=restaurant_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def services(store, publisher, clock):
    return build_services(store, publisher, clock)


@pytest.fixture
def client(services):
    app.state.services = services
    # Not entered as a context manager: the lifespan would wire a real database
    yield TestClient(app)
    del app.state.services


@pytest.fixture
def customer_id():
    return uuid4()


@pytest.fixture
def customer_headers(customer_id):
    return auth(customer_id)


@pytest.fixture
def staff_headers(restaurant):
    return auth(role="subadmin", restaurant_id=restaurant.id)


@pytest.fixture
def admin_headers():
    return auth(role="admin")


def create(client, restaurant, headers, **overrides):
    return client.post(f"{API}/bookings/", json=booking_request(restaurant, **overrides), headers=headers)


class TestCustomerBookings:

    def test_create_booking(self, client, restaurant, customer_headers, customer_id):
        response = create(client, restaurant, customer_headers)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["booking"]["status"] == "confirmed"
        assert body["booking"]["user_id"] == str(customer_id)
        assert body["booking"]["time_remaining"] == "555m 0s"
        assert body["booking"]["is_expired"] is False

    def test_double_booking_conflicts(self, client, restaurant, customer_headers):
        create(client, restaurant, customer_headers)
        response = create(client, restaurant, auth())

        assert response.status_code == 409
        assert response.json() == {"success": False, "message": "Seat is not available"}

    def test_validation_error_shape(self, client, restaurant, customer_headers):
        response = create(client, restaurant, customer_headers, contact_phone="12345")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert "contact_phone" in body["message"]

    def test_party_size_limit(self, client, restaurant, customer_headers):
        response = create(client, restaurant, customer_headers, party_size=9)
        assert response.status_code == 400

    def test_requires_token(self, client, restaurant):
        response = client.post(f"{API}/bookings/", json=booking_request(restaurant))

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_rejects_garbage_token(self, client, restaurant):
        response = create(client, restaurant, {"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_staff_cannot_book_as_customer(self, client, restaurant, staff_headers):
        assert create(client, restaurant, staff_headers).status_code == 403

    def test_walk_in_not_allowed_for_customers(self, client, restaurant, customer_headers):
        response = create(client, restaurant, customer_headers, is_walk_in=True, customer_name="Asha")
        assert response.status_code == 403

    def test_unknown_restaurant(self, client, restaurant, customer_headers):
        response = create(client, restaurant, customer_headers, restaurant_id=str(uuid4()))
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_list_my_bookings(self, client, store, restaurant, customer_headers):
        create(client, restaurant, customer_headers)
        create(client, restaurant, customer_headers, seat_number="T2")
        create(client, restaurant, auth(), seat_number="B1")

        response = client.get(f"{API}/bookings/", headers=customer_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["total"] == 2
        assert body["total_pages"] == 1
        assert {b["seat_number"] for b in body["data"]} == {"T1", "T2"}

    def test_get_booking_by_reference(self, client, restaurant, customer_headers, staff_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        own = client.get(f"{API}/bookings/{booking['booking_id']}", headers=customer_headers)
        assert own.status_code == 200
        assert own.json()["booking"]["id"] == booking["id"]

        assert client.get(f"{API}/bookings/{booking['id']}", headers=staff_headers).status_code == 200
        assert client.get(f"{API}/bookings/{booking['id']}", headers=auth()).status_code == 403

    def test_unknown_booking(self, client, customer_headers):
        response = client.get(f"{API}/bookings/RST20240601000000ZZZZ", headers=customer_headers)
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Booking not found"}

    def test_cancel_own_booking(self, client, store, restaurant, customer_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        response = client.patch(
            f"{API}/bookings/{booking['booking_id']}/cancel",
            json={"reason": "Plans changed"},
            headers=customer_headers,
        )

        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "cancelled"
        assert response.json()["booking"]["cancel_reason"] == "Plans changed"
        assert store.restaurants[restaurant.id].find_seat("T1").is_available is True

    def test_cancel_without_body(self, client, restaurant, customer_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        response = client.patch(f"{API}/bookings/{booking['id']}/cancel", headers=customer_headers)
        assert response.json()["booking"]["cancel_reason"] == "Cancelled by user"

    def test_cancel_twice_is_illegal(self, client, restaurant, customer_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]
        client.patch(f"{API}/bookings/{booking['id']}/cancel", headers=customer_headers)

        response = client.patch(f"{API}/bookings/{booking['id']}/cancel", headers=customer_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["current_status"] == "cancelled"
        assert body["attempted"] == "cancel"

    def test_cannot_cancel_someone_elses_booking(self, client, restaurant, customer_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        response = client.patch(f"{API}/bookings/{booking['id']}/cancel", headers=auth())
        assert response.status_code == 403


class TestSeatAvailability:

    def test_seat_map(self, client, restaurant, customer_headers):
        create(client, restaurant, customer_headers)

        response = client.get(
            f"{API}/restaurants/{restaurant.id}/seat-availability",
            params={"date": "2024-06-01", "time": "19:00"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert {s["seat_number"]: s["is_available"] for s in body["seat_availability"]} == {
            "T1": False, "T2": True, "B1": True,
        }
        assert [s["seat_number"] for s in body["available_seats"]] == ["T2", "B1"]
        assert body["time_slots"][0] == "09:00"
        assert body["time_slots"][-1] == "21:30"
        assert body["next_available_times"] == []

    def test_past_date(self, client, restaurant):
        response = client.get(
            f"{API}/restaurants/{restaurant.id}/seat-availability",
            params={"date": "2024-05-31", "time": "19:00"},
        )
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestStaffBookings:

    def test_verify_arrival(self, client, restaurant, customer_headers, staff_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        response = client.patch(f"{API}/admin/bookings/{booking['booking_id']}/verify", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "arrived"
        assert response.json()["booking"]["verified"] is True
        assert response.json()["booking"]["time_remaining"] is None

    def test_verify_twice(self, client, restaurant, customer_headers, staff_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]
        client.patch(f"{API}/admin/bookings/{booking['id']}/verify", headers=staff_headers)

        response = client.patch(f"{API}/admin/bookings/{booking['id']}/verify", headers=staff_headers)

        assert response.status_code == 400
        assert response.json()["current_status"] == "arrived"
        assert response.json()["attempted"] == "verify"

    def test_verify_after_window(self, client, services, restaurant, customer_headers, staff_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]
        services.clock.advance(hours=9, minutes=20)

        response = client.patch(f"{API}/admin/bookings/{booking['id']}/verify", headers=staff_headers)
        assert response.status_code == 400
        assert "arrival window" in response.json()["message"]

    def test_staff_of_other_restaurant(self, client, restaurant, customer_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]
        outsider = auth(role="subadmin", restaurant_id=uuid4())

        response = client.patch(f"{API}/admin/bookings/{booking['id']}/verify", headers=outsider)
        assert response.status_code == 403

    def test_customer_cannot_verify(self, client, restaurant, customer_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        response = client.patch(f"{API}/admin/bookings/{booking['id']}/verify", headers=customer_headers)
        assert response.status_code == 403

    def test_complete_and_no_show(self, client, restaurant, customer_headers, staff_headers):
        seated = create(client, restaurant, customer_headers).json()["booking"]
        missing = create(client, restaurant, customer_headers, seat_number="T2").json()["booking"]

        client.patch(f"{API}/admin/bookings/{seated['id']}/verify", headers=staff_headers)
        completed = client.patch(f"{API}/admin/bookings/{seated['id']}/complete", headers=staff_headers)
        no_show = client.patch(f"{API}/admin/bookings/{missing['id']}/no-show", headers=staff_headers)

        assert completed.json()["booking"]["status"] == "completed"
        assert no_show.json()["booking"]["status"] == "no-show"

    def test_staff_cancel_default_reason(self, client, restaurant, customer_headers, staff_headers):
        booking = create(client, restaurant, customer_headers).json()["booking"]

        response = client.patch(f"{API}/admin/bookings/{booking['id']}/cancel", headers=staff_headers)
        assert response.json()["booking"]["cancel_reason"] == "Cancelled by restaurant"

    def test_restaurant_bookings(self, client, restaurant, customer_headers, staff_headers):
        create(client, restaurant, customer_headers, booking_time="20:00")
        create(client, restaurant, customer_headers, seat_number="T2", booking_time="12:00")

        response = client.get(
            f"{API}/admin/restaurants/{restaurant.id}/bookings",
            params={"date": "2024-06-01"},
            headers=staff_headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert [b["booking_time"] for b in body["data"]] == ["12:00", "20:00"]
        assert len(body["pending_arrivals"]) == 2

    def test_restaurant_bookings_other_restaurant(self, client, store, staff_headers):
        other = store.seed_restaurant(make_restaurant())
        response = client.get(f"{API}/admin/restaurants/{other.id}/bookings", headers=staff_headers)
        assert response.status_code == 403

    def test_booking_stats(self, client, store, restaurant, staff_headers):
        store.seed_booking(make_booking(restaurant, status="no-show"))

        response = client.get(f"{API}/admin/restaurants/{restaurant.id}/booking-stats", headers=staff_headers)

        assert response.status_code == 200
        assert response.json()["today"]["no_shows"] == 1

    def test_walk_in(self, client, restaurant, staff_headers):
        response = client.post(
            f"{API}/admin/restaurants/{restaurant.id}/walk-ins",
            json=booking_request(restaurant, customer_name="Asha"),
            headers=staff_headers,
        )

        assert response.status_code == 201
        booking = response.json()["booking"]
        assert booking["status"] == "arrived"
        assert booking["is_walk_in"] is True
        assert booking["booking_id"].startswith("WLK")

    def test_walk_in_body_takes_restaurant_from_path(self, client, restaurant, staff_headers):
        body = booking_request(restaurant, customer_name="Asha")
        del body["restaurant_id"]

        response = client.post(
            f"{API}/admin/restaurants/{restaurant.id}/walk-ins", json=body, headers=staff_headers,
        )

        assert response.status_code == 201
        assert response.json()["booking"]["restaurant_id"] == str(restaurant.id)

    def test_walk_in_needs_customer_name(self, client, restaurant, staff_headers):
        body = booking_request(restaurant)
        del body["restaurant_id"]

        response = client.post(
            f"{API}/admin/restaurants/{restaurant.id}/walk-ins", json=body, headers=staff_headers,
        )

        assert response.status_code == 400
        assert response.json()["message"].startswith("customer_name")

    def test_sweep_is_admin_only(self, client, store, services, restaurant, staff_headers, admin_headers):
        store.seed_booking(make_booking(restaurant, booking_time="10:30"))
        services.clock.advance(minutes=46)

        assert client.post(f"{API}/admin/bookings/sweep", headers=staff_headers).status_code == 403

        response = client.post(f"{API}/admin/bookings/sweep", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["expired"] == 1


class TestRealtimeRoom:

    def test_socket_joins_and_leaves_room(self, store, clock, restaurant):
        publisher = RestaurantRoomPublisher()
        app.state.services = build_services(store, publisher, clock)
        topic = str(restaurant.id)
        try:
            client = TestClient(app)
            with client.websocket_connect(f"{API}/restaurants/{restaurant.id}/events"):
                for _ in range(100):
                    if publisher.rooms.get(topic):
                        break
                    time.sleep(0.01)
                assert len(publisher.rooms[topic]) == 1

            for _ in range(100):
                if topic not in publisher.rooms:
                    break
                time.sleep(0.01)
            assert topic not in publisher.rooms
        finally:
            del app.state.services

    def test_socket_refused_without_rooms(self, client, restaurant):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"{API}/restaurants/{restaurant.id}/events") as ws:
                ws.receive_text()
