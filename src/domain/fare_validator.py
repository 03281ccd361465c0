from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from src.domain.exceptions import FareMismatchError


FARE_TOLERANCE = Decimal("0.01")
_CENTS = Decimal("0.01")


class PricedSeat(Protocol):
    price: Decimal


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    """Quantize to two places (half-up)."""
    return _as_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


class FareValidator:
    """
    Recomputes the authoritative total from locked seat prices.

    The bus base price is never consulted here; it is only a default
    when seats are provisioned.
    """

    def __init__(self, tolerance: Decimal = FARE_TOLERANCE):
        self.tolerance = tolerance

    def calculate(self, seats: Iterable[PricedSeat]) -> Decimal:
        total = sum((_as_decimal(seat.price) for seat in seats), Decimal("0"))
        return to_money(total)

    def validate(self, seats: Iterable[PricedSeat], client_total) -> Decimal:
        calculated = self.calculate(seats)
        submitted = _as_decimal(client_total)

        if abs(calculated - submitted) > self.tolerance:
            raise FareMismatchError(
                calculated=calculated,
                submitted=to_money(submitted),
            )

        return calculated
