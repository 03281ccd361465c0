from datetime import date
from decimal import Decimal

import pytest

from src.application.booking_service import BookingService
from src.application.bus_service import BusService
from src.domain.exceptions import BusNotFoundError, InvalidRequestError


TRAVEL_DATE = date(2026, 11, 2)


@pytest.fixture
def dated_bus(db_session, make_bus):
    bus = make_bus()
    bus.departure_date = TRAVEL_DATE
    db_session.commit()
    return bus


def test_get_bus_reports_available_seats(client, db_session, make_user, dated_bus):
    user = make_user()
    BookingService(db_session).book(user.id, [dated_bus.seats[0].id], Decimal("100"))

    response = client.get(f"/api/bus/{dated_bus.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["busName"] == "Kaveri Express"
    assert body["totalSeats"] == 3
    assert body["availableSeats"] == 2
    assert body["departureDate"] == "2026-11-02"


def test_unknown_bus_returns_404(client):
    response = client.get("/api/bus/999")

    assert response.status_code == 404
    assert response.json()["detail"]["message"] == "Bus not found with id: 999"


def test_search_matches_route_case_insensitively(client, dated_bus):
    response = client.get(
        "/api/bus/search",
        params={"source": "bengaluru", "destination": "CHENNAI", "date": "2026-11-02"},
    )

    assert response.status_code == 200
    assert [bus["id"] for bus in response.json()] == [dated_bus.id]


def test_search_on_another_date_finds_nothing(client, dated_bus):
    response = client.get(
        "/api/bus/search",
        params={"source": "Bengaluru", "destination": "Chennai", "date": "2026-11-03"},
    )

    assert response.status_code == 200
    assert response.json() == []


def test_search_without_date_fails_validation(client):
    response = client.get("/api/bus/search", params={"source": "Bengaluru", "destination": "Chennai"})

    assert response.status_code == 400


def test_generate_seats_fills_up_to_bus_total(client, db_session, dated_bus):
    dated_bus.total_seats = 5
    db_session.commit()

    response = client.post(f"/api/bus/{dated_bus.id}/generate-seats")

    assert response.status_code == 200
    body = response.json()
    assert body["added"] == 2
    assert body["totalSeats"] == 5

    seats = client.get(f"/api/buses/{dated_bus.id}/seats").json()
    assert [seat["seatNumber"] for seat in seats] == ["S1", "S2", "S3", "S4", "S5"]
    assert {Decimal(seat["price"]) for seat in seats[3:]} == {Decimal("100")}


def test_generate_seats_for_unknown_bus(db_session):
    with pytest.raises(BusNotFoundError):
        BusService(db_session).generate_seats(999)


def test_shrinking_below_booked_count_is_refused(db_session, make_user, dated_bus):
    user = make_user()
    s1, s2, _ = dated_bus.seats
    BookingService(db_session).book(user.id, [s1.id, s2.id], Decimal("200"))

    with pytest.raises(InvalidRequestError):
        BusService(db_session).generate_seats(dated_bus.id, total_seats=1)

    assert len(BusService(db_session).get_bus(dated_bus.id).seats) == 3


def test_shrinking_keeps_seats_with_booking_history(db_session, make_user, dated_bus):
    user = make_user()
    s3 = dated_bus.seats[2]
    bookings = BookingService(db_session)
    booking = bookings.book(user.id, [s3.id], Decimal("100"))
    bookings.cancel_booking(booking.id)

    shrunk = BusService(db_session).generate_seats(dated_bus.id, total_seats=2)

    assert shrunk.removed == 0
    assert [seat.seat_number for seat in shrunk.bus.seats] == ["S1", "S2", "S3"]

    grown = BusService(db_session).generate_seats(dated_bus.id, total_seats=4)

    assert grown.added == 1
    assert [seat.seat_number for seat in grown.bus.seats] == ["S1", "S2", "S3", "S4"]


def test_shrinking_drops_unused_seats(client, dated_bus):
    response = client.post(f"/api/bus/{dated_bus.id}/generate-seats", params={"totalSeats": 1})

    assert response.status_code == 200
    assert response.json()["removed"] == 2
    seats = client.get(f"/api/buses/{dated_bus.id}/seats").json()
    assert [seat["seatNumber"] for seat in seats] == ["S1"]
