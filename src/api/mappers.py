"""
Entity -> response mapping.

Booking.total_fare is authoritative; seat prices are shown as persisted.
"""

from src.api.schemas.schemas import (
    BookingResponse,
    BusResponse,
    BusSummary,
    PaymentSummary,
    SeatResponse,
    UserSummary,
)
from src.infrastructure.db.models import Booking, Bus, PaymentRecord, Seat, User


def infer_payment_method(record: PaymentRecord) -> str | None:
    payment_id = record.payment_id or ""
    order_id = record.order_id or ""
    if payment_id.startswith("pay_") or order_id.startswith("order_"):
        return "Razorpay"
    return None


def to_seat_response(seat: Seat) -> SeatResponse:
    return SeatResponse(
        id=seat.id,
        seat_number=seat.seat_number,
        booked=seat.booked,
        price=seat.price,
    )


def to_bus_summary(bus: Bus) -> BusSummary:
    return BusSummary(
        id=bus.id,
        bus_name=bus.bus_name,
        bus_type=bus.bus_type,
        source=bus.source,
        destination=bus.destination,
        departure_time=bus.departure_time,
        arrival_time=bus.arrival_time,
        departure_date=bus.departure_date,
        price=bus.price,
    )


def to_bus_response(bus: Bus) -> BusResponse:
    summary = to_bus_summary(bus)
    return BusResponse(
        **summary.model_dump(),
        total_seats=bus.total_seats,
        status=bus.status,
        available_seats=sum(1 for seat in bus.seats if not seat.booked),
    )


def to_user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        phone_number=user.phone_number,
    )


def to_payment_summary(record: PaymentRecord | None) -> PaymentSummary | None:
    if record is None:
        return None
    return PaymentSummary(
        id=record.id,
        order_id=record.order_id,
        payment_id=record.payment_id,
        status=record.status.value,
        amount=record.amount,
        email=record.email,
        payment_method=infer_payment_method(record),
    )


def to_booking_response(
    booking: Booking,
    payment: PaymentRecord | None = None,
) -> BookingResponse:
    return BookingResponse(
        id=booking.id,
        booking_time=booking.booking_time,
        status=booking.status.value,
        total_fare=booking.total_fare,
        bus=to_bus_summary(booking.bus),
        seats=[to_seat_response(seat) for seat in booking.seats],
        user=to_user_summary(booking.user),
        payment=to_payment_summary(payment),
    )
