from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BookingRequest(CamelModel):
    user_id: int
    bus_id: int | None = None
    seat_ids: list[int]
    total_fare: Decimal = Field(ge=0)
    payment_id: str | None = None
    order_id: str | None = None
    razorpay_signature: str | None = None
    payment_record_id: int | None = None


class SeatResponse(CamelModel):
    id: int
    seat_number: str
    booked: bool
    price: Decimal


class BusSummary(CamelModel):
    id: int
    bus_name: str
    bus_type: str | None = None
    source: str
    destination: str
    departure_time: str | None = None
    arrival_time: str | None = None
    departure_date: date | None = None
    price: Decimal


class BusResponse(BusSummary):
    total_seats: int
    status: str
    available_seats: int


class SeatGenerationResponse(CamelModel):
    bus_id: int
    total_seats: int
    added: int
    removed: int
    message: str


class UserSummary(CamelModel):
    id: int
    name: str
    email: str
    phone_number: str | None = None


class PaymentSummary(CamelModel):
    id: int
    order_id: str | None = None
    payment_id: str | None = None
    status: str
    amount: Decimal | None = None
    email: str | None = None
    payment_method: str | None = None


class BookingResponse(CamelModel):
    id: int
    booking_time: datetime
    status: str
    total_fare: Decimal
    bus: BusSummary
    seats: list[SeatResponse]
    user: UserSummary
    payment: PaymentSummary | None = None


class RefundResponse(CamelModel):
    booking_id: int
    refunded: bool
    status: str


class MessageResponse(CamelModel):
    message: str


class CreateOrderRequest(CamelModel):
    amount: Decimal = Field(gt=0)
    email: str | None = None
    contact: str | None = None
    user_id: int | None = None
    bus_id: int | None = None
    seat_numbers: list[str] = Field(default_factory=list)


class CreateOrderResponse(CamelModel):
    success: bool = True
    order_id: str
    payment_record_id: int
    amount: int
    currency: str
    key_id: str | None = None


class RazorpayVerifyRequest(CamelModel):
    order_id: str
    payment_id: str
    signature: str


class RazorpayVerifyResponse(CamelModel):
    success: bool
    order_id: str
    payment_id: str
    status: str
    payment_record_id: int
