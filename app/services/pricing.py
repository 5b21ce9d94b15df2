"""
Booking price computation.

Pure functions only: no session, no clock, no settings lookups inside
compute_price. The caller resolves the rider class and the policy once and
passes them in, so identical inputs always give identical totals.
"""
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Optional, Protocol

from app.core.config import Settings
from app.models.user import UserRole


class RiderClass(str, Enum):
    STANDARD = "STANDARD"
    STUDENT = "STUDENT"


class PricedSeat(Protocol):
    price: Decimal


class PricedShowtime(Protocol):
    date: date
    time: str
    surcharge: Optional[Decimal]


SATURDAY, SUNDAY = 5, 6


@dataclass(frozen=True)
class PricingPolicy:
    student_discount_factor: Decimal = Decimal("0.8")
    peak_surcharge: Decimal = Decimal("20000")
    evening_threshold: str = "18:00"
    peak_weekdays: tuple[int, ...] = (SATURDAY, SUNDAY)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        return cls(
            student_discount_factor=Decimal(settings.STUDENT_DISCOUNT_FACTOR),
            peak_surcharge=Decimal(settings.PEAK_SURCHARGE),
            evening_threshold=settings.PEAK_EVENING_THRESHOLD,
        )


def classify_rider(role: UserRole | str | None) -> RiderClass:
    """Resolve a user role into the discount class the pricing engine understands."""
    if role is None:
        return RiderClass.STANDARD
    value = role.value if isinstance(role, Enum) else str(role)
    if value.upper() == UserRole.STUDENT.value:
        return RiderClass.STUDENT
    return RiderClass.STANDARD


def is_peak(showtime: PricedShowtime, policy: PricingPolicy) -> bool:
    if showtime.date.weekday() in policy.peak_weekdays:
        return True
    return showtime.time > policy.evening_threshold


def compute_price(seats: Iterable[PricedSeat], rider: RiderClass, showtime: PricedShowtime,
                  policy: PricingPolicy = PricingPolicy()) -> Decimal:
    # discount applies to the seat sum only, surcharges are added afterwards
    total = sum((Decimal(seat.price) for seat in seats), Decimal("0"))
    if rider is RiderClass.STUDENT:
        total = total * policy.student_discount_factor
    if is_peak(showtime, policy):
        total += policy.peak_surcharge
    if showtime.surcharge:
        total += Decimal(showtime.surcharge)
    return total


def to_gateway_amount(total_price: Decimal) -> int:
    """Providers only accept whole currency units."""
    return int(Decimal(total_price).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
