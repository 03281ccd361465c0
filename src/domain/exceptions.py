from decimal import Decimal


class BusBookingError(Exception):
    """
    Base exception for all domain-level errors
    inside the bus booking engine.
    """


class InvalidRequestError(BusBookingError):
    """Raised when required booking fields are missing or malformed."""


class InvalidStateTransitionError(BusBookingError):
    """
    Raised when an illegal booking or payment state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class NotFoundError(BusBookingError):
    """Base for referenced-entity-absent errors."""


class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User not found with id: {user_id}")


class BusNotFoundError(NotFoundError):
    def __init__(self, bus_id: int):
        self.bus_id = bus_id
        super().__init__(f"Bus not found with id: {bus_id}")


class SeatsNotFoundError(NotFoundError):
    def __init__(self, missing_ids: list[int]):
        self.missing_ids = list(missing_ids)
        super().__init__(f"Some seats not found: {self.missing_ids}")


class PaymentNotFoundError(NotFoundError):
    def __init__(self, reference):
        self.reference = reference
        super().__init__(f"Payment record not found: {reference}")


class BookingNotFoundError(NotFoundError):
    def __init__(self, booking_id: int):
        self.booking_id = booking_id
        super().__init__(f"Booking not found with id: {booking_id}")


class SeatAlreadyBookedError(BusBookingError):
    """Raised when a locked seat turns out to be sold already."""

    def __init__(self, seat_number: str):
        self.seat_number = seat_number
        super().__init__(f"Seat {seat_number} is already booked")


class FareMismatchError(BusBookingError):
    """
    Raised when the client-submitted total disagrees with the
    sum of persisted seat prices by more than the tolerance.
    """

    def __init__(self, calculated: Decimal, submitted: Decimal):
        self.calculated = calculated
        self.submitted = submitted
        super().__init__(
            f"Fare mismatch. Calculated: {calculated}, Client: {submitted}"
        )


class PaymentVerificationError(BusBookingError):
    """Raised when a gateway signature does not verify."""


class PaymentNotUsableError(BusBookingError):
    """Raised when a payment record cannot back a booking (e.g. FAILED)."""


class PaymentAmountMismatchError(PaymentNotUsableError):
    """Raised when the amount paid does not cover the authoritative fare."""

    def __init__(self, payment_record_id: int, paid: Decimal, fare: Decimal):
        self.payment_record_id = payment_record_id
        self.paid = paid
        self.fare = fare
        super().__init__(
            f"Payment {payment_record_id} amount {paid} does not match fare {fare}"
        )


class PaymentGatewayNotConfiguredError(BusBookingError):
    """Raised when Razorpay credentials are missing."""
