from decimal import Decimal
from types import SimpleNamespace

import pytest

from src.domain.exceptions import FareMismatchError
from src.domain.fare_validator import FareValidator, to_money


def _seats(*prices):
    return [SimpleNamespace(price=Decimal(price)) for price in prices]


def test_returns_authoritative_total():
    total = FareValidator().validate(_seats("100", "100"), Decimal("200"))

    assert total == Decimal("200.00")


def test_difference_within_tolerance_uses_computed_total():
    total = FareValidator().validate(_seats("100.00"), Decimal("100.01"))

    assert total == Decimal("100.00")


def test_difference_above_tolerance_fails_with_both_figures():
    with pytest.raises(FareMismatchError) as excinfo:
        FareValidator().validate(_seats("100"), Decimal("50"))

    assert excinfo.value.calculated == Decimal("100.00")
    assert excinfo.value.submitted == Decimal("50.00")
    assert str(excinfo.value) == "Fare mismatch. Calculated: 100.00, Client: 50.00"


def test_just_over_tolerance_fails():
    with pytest.raises(FareMismatchError):
        FareValidator().validate(_seats("100.00"), Decimal("100.02"))


def test_float_client_total_does_not_drift():
    total = FareValidator().validate(_seats("0.10", "0.20"), 0.3)

    assert total == Decimal("0.30")


def test_to_money_rounds_half_up():
    assert to_money("2.345") == Decimal("2.35")
    assert to_money(Decimal("7")) == Decimal("7.00")
