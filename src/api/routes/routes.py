import logging

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from src.infrastructure.db.session import SessionLocal
from src.application.booking_service import BookingService
from src.application.bus_service import BusService
from src.application.payment_service import PaymentService
from src.api.mappers import to_booking_response, to_bus_response, to_seat_response
from src.api.schemas.schemas import (
    BookingRequest,
    BookingResponse,
    BusResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    MessageResponse,
    RazorpayVerifyRequest,
    RazorpayVerifyResponse,
    RefundResponse,
    SeatGenerationResponse,
    SeatResponse,
)
from src.domain.exceptions import (
    BusBookingError,
    FareMismatchError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotFoundError,
    PaymentAmountMismatchError,
    PaymentGatewayNotConfiguredError,
    PaymentNotUsableError,
    PaymentVerificationError,
    SeatAlreadyBookedError,
    SeatsNotFoundError,
)
from src.domain.state_machine import PaymentStatus
from src.infrastructure.db.models import Booking
from src.infrastructure.notifications.email_notifier import EmailNotifier, build_notifier
from src.infrastructure.payments.razorpay_gateway import RazorpayGateway
from src.infrastructure.repositories.payment_repository import PaymentRepository
from src.infrastructure.repositories.seat_repository import SeatRepository


router = APIRouter()
logger = logging.getLogger(__name__)


# Most specific first; the first isinstance match wins.
_ERROR_STATUS: list[tuple[type[BusBookingError], int, str]] = [
    (SeatAlreadyBookedError, status.HTTP_409_CONFLICT, "Seat already booked"),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT, "Invalid state transition"),
    (FareMismatchError, status.HTTP_400_BAD_REQUEST, "Fare mismatch"),
    (PaymentVerificationError, status.HTTP_400_BAD_REQUEST, "Payment verification failed"),
    (PaymentAmountMismatchError, status.HTTP_400_BAD_REQUEST, "Payment amount mismatch"),
    (PaymentNotUsableError, status.HTTP_400_BAD_REQUEST, "Payment not usable"),
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST, "Invalid data"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "Resource not found"),
    (PaymentGatewayNotConfiguredError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Payment gateway not configured"),
]


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_notifier() -> EmailNotifier:
    return build_notifier()


def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway()


def _http_error(exc: BusBookingError) -> HTTPException:
    for error_type, status_code, title in _ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, title = status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error"

    detail: dict = {"error": title, "message": str(exc)}
    if isinstance(exc, FareMismatchError):
        detail["calculated"] = str(exc.calculated)
        detail["submitted"] = str(exc.submitted)
    if isinstance(exc, SeatsNotFoundError):
        detail["missingSeatIds"] = exc.missing_ids
    if isinstance(exc, SeatAlreadyBookedError):
        detail["seatNumber"] = exc.seat_number
    if isinstance(exc, PaymentAmountMismatchError):
        detail["paid"] = str(exc.paid)
        detail["fare"] = str(exc.fare)

    return HTTPException(status_code=status_code, detail=detail)


def _booking_response(db: Session, booking: Booking) -> BookingResponse:
    payment = None
    if booking.payment_record_id is not None:
        payment = PaymentRepository(db).get_by_id(booking.payment_record_id)
    return to_booking_response(booking, payment)


def _booking_service(
    db: Session,
    notifier: EmailNotifier,
    gateway: RazorpayGateway,
) -> BookingService:
    return BookingService(db, notifier=notifier, verifier=gateway)


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/api/bookings/book", response_model=BookingResponse)
def book_seats(
    request: BookingRequest,
    db: Session = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    service = _booking_service(db, notifier, gateway)

    try:
        booking = service.book(
            user_id=request.user_id,
            seat_ids=request.seat_ids,
            client_total=request.total_fare,
            payment_record_id=request.payment_record_id,
            order_id=request.order_id,
            payment_id=request.payment_id,
            signature=request.razorpay_signature,
            bus_id=request.bus_id,
        )
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return _booking_response(db, booking)


@router.get("/api/bookings/user/{user_id}", response_model=list[BookingResponse])
def get_bookings_by_user(
    user_id: int,
    db: Session = Depends(get_db),
):
    service = BookingService(db)
    return [_booking_response(db, booking) for booking in service.get_bookings_by_user(user_id)]


@router.get("/api/bookings/by-payment/{payment_record_id}", response_model=BookingResponse)
def get_booking_by_payment_record(
    payment_record_id: int,
    db: Session = Depends(get_db),
):
    booking = BookingService(db).find_by_payment_record_id(payment_record_id)
    if booking is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "Resource not found",
                "message": f"No booking linked to payment record {payment_record_id}",
            },
        )
    return _booking_response(db, booking)


@router.get("/api/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    db: Session = Depends(get_db),
):
    try:
        booking = BookingService(db).get_booking(booking_id)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return _booking_response(db, booking)


@router.delete("/api/bookings/{booking_id}", response_model=MessageResponse)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
):
    try:
        BookingService(db).cancel_booking(booking_id)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return MessageResponse(message="Booking cancelled successfully")


@router.post("/api/bookings/{booking_id}/refund", response_model=RefundResponse)
def refund_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    notifier: EmailNotifier = Depends(get_notifier),
):
    service = BookingService(db, notifier=notifier)

    try:
        refunded = service.process_refund(booking_id)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    booking = service.get_booking(booking_id)
    if not refunded:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "Refund not allowed",
                "message": f"Cannot refund booking in status {booking.status.value}.",
            },
        )

    return RefundResponse(
        booking_id=booking.id,
        refunded=True,
        status=booking.status.value,
    )


@router.get("/api/bus/search", response_model=list[BusResponse])
def search_buses(
    source: str,
    destination: str,
    departure_date: date = Query(alias="date"),
    db: Session = Depends(get_db),
):
    try:
        buses = BusService(db).search(source, destination, departure_date)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return [to_bus_response(bus) for bus in buses]


@router.get("/api/bus/{bus_id}", response_model=BusResponse)
def get_bus(
    bus_id: int,
    db: Session = Depends(get_db),
):
    try:
        bus = BusService(db).get_bus(bus_id)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return to_bus_response(bus)


@router.post("/api/bus/{bus_id}/generate-seats", response_model=SeatGenerationResponse)
def generate_seats(
    bus_id: int,
    total_seats: int | None = Query(default=None, alias="totalSeats", ge=0),
    db: Session = Depends(get_db),
):
    try:
        generated = BusService(db).generate_seats(bus_id, total_seats)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    bus = generated.bus
    return SeatGenerationResponse(
        bus_id=bus.id,
        total_seats=bus.total_seats,
        added=generated.added,
        removed=generated.removed,
        message=f"{bus.total_seats} seats generated for {bus.bus_name} (₹{bus.price} per seat)",
    )


@router.get("/api/buses/{bus_id}/seats", response_model=list[SeatResponse])
def list_seats(
    bus_id: int,
    db: Session = Depends(get_db),
):
    try:
        seats = SeatRepository(db).list_by_bus(bus_id)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return [to_seat_response(seat) for seat in seats]


@router.get("/api/buses/{bus_id}/seats/available", response_model=list[SeatResponse])
def list_available_seats(
    bus_id: int,
    db: Session = Depends(get_db),
):
    try:
        seats = SeatRepository(db).list_by_bus(bus_id, available_only=True)
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return [to_seat_response(seat) for seat in seats]


@router.post("/api/payments/create-order", response_model=CreateOrderResponse)
def create_payment_order(
    request: CreateOrderRequest,
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    service = PaymentService(db, gateway)

    try:
        created = service.create_order(
            amount=request.amount,
            email=request.email,
            contact=request.contact,
            user_id=request.user_id,
            bus_id=request.bus_id,
            seat_numbers=request.seat_numbers,
        )
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return CreateOrderResponse(
        order_id=created.order_id,
        payment_record_id=created.record.id,
        amount=created.amount_paise,
        currency=created.currency,
        key_id=created.key_id,
    )


@router.post("/api/payments/verify", response_model=RazorpayVerifyResponse)
def verify_payment(
    request: RazorpayVerifyRequest,
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    service = PaymentService(db, gateway)

    try:
        record = service.verify_payment(
            order_id=request.order_id,
            payment_id=request.payment_id,
            signature=request.signature,
        )
    except BusBookingError as exc:
        raise _http_error(exc) from exc

    return RazorpayVerifyResponse(
        success=record.status == PaymentStatus.SUCCESS,
        order_id=request.order_id,
        payment_id=request.payment_id,
        status=record.status.value,
        payment_record_id=record.id,
    )
