from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.models.user import UserRole
from app.services.pricing import PricingPolicy, RiderClass, classify_rider, compute_price, is_peak, to_gateway_amount


WEDNESDAY = date(2024, 1, 10)
SATURDAY = date(2024, 1, 13)
SUNDAY = date(2024, 1, 14)


def seats(*prices):
    return [SimpleNamespace(price=Decimal(price)) for price in prices]


def showtime(day=WEDNESDAY, time="14:00", surcharge=None):
    return SimpleNamespace(date=day, time=time, surcharge=surcharge)


@pytest.fixture
def policy():
    return PricingPolicy()


def test_standard_rider_off_peak_pays_seat_sum(policy):
    assert compute_price(seats("100", "120"), RiderClass.STANDARD, showtime(), policy) == Decimal("220")


def test_student_pays_eighty_percent(policy):
    assert compute_price(seats("100", "120"), RiderClass.STUDENT, showtime(), policy) == Decimal("176")


@pytest.mark.parametrize("day,time", [(SATURDAY, "10:00"), (SUNDAY, "09:00"), (WEDNESDAY, "18:01"), (WEDNESDAY, "21:15")])
def test_peak_showtimes_add_flat_surcharge(policy, day, time):
    total = compute_price(seats("100"), RiderClass.STANDARD, showtime(day, time), policy)
    assert total == Decimal("100") + policy.peak_surcharge


def test_evening_threshold_itself_is_off_peak(policy):
    assert not is_peak(showtime(WEDNESDAY, "18:00"), policy)
    assert compute_price(seats("100"), RiderClass.STANDARD, showtime(WEDNESDAY, "18:00"), policy) == Decimal("100")


def test_discount_applies_before_surcharge(policy):
    total = compute_price(seats("100", "120"), RiderClass.STUDENT, showtime(SATURDAY, "20:00"), policy)
    # surcharge counted once even when both the day and the hour are peak
    assert total == Decimal("176") + Decimal("20000")


def test_showtime_surcharge_is_added(policy):
    total = compute_price(seats("100"), RiderClass.STANDARD, showtime(surcharge=Decimal("15.50")), policy)
    assert total == Decimal("115.50")


def test_same_inputs_same_total(policy):
    args = (seats("99.99", "45.01"), RiderClass.STUDENT, showtime(SATURDAY, "19:00", Decimal("3")), policy)
    assert compute_price(*args) == compute_price(*args)


def test_policy_values_are_configurable():
    policy = PricingPolicy(student_discount_factor=Decimal("0.5"), peak_surcharge=Decimal("10"), evening_threshold="17:00")
    assert compute_price(seats("100"), RiderClass.STUDENT, showtime(WEDNESDAY, "17:30"), policy) == Decimal("60")


@pytest.mark.parametrize("role,expected", [
    (UserRole.STUDENT, RiderClass.STUDENT),
    ("student", RiderClass.STUDENT),
    (UserRole.USER, RiderClass.STANDARD),
    (UserRole.ADMIN, RiderClass.STANDARD),
    (None, RiderClass.STANDARD),
])
def test_classify_rider(role, expected):
    assert classify_rider(role) is expected


@pytest.mark.parametrize("total,expected", [
    (Decimal("220"), 220),
    (Decimal("176.5"), 177),
    (Decimal("176.4999"), 176),
    (Decimal("50000.0000"), 50000),
])
def test_gateway_amount_rounds_half_up(total, expected):
    assert to_gateway_amount(total) == expected
