"""Night (evening taxi) surcharge.

A booking that ends after 19:00, starts before 07:00 or runs past midnight
pays a fixed fee per day. The parent-facing quote and the caregiver's pay
apply the same rule with different fees and currencies, so each side gets
its own named rule.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from nannyshift.errors import InvalidInput
from nannyshift.timeslots import TimeSlot

NIGHT_START_HOUR = 19
NIGHT_END_HOUR = 7


@dataclass(frozen=True)
class NightSurchargeRule:
    fee_per_day: float
    currency: str

    def __post_init__(self) -> None:
        if self.fee_per_day < 0:
            raise InvalidInput("night surcharge fee cannot be negative")

    def total(self, is_evening: bool, days: int = 1) -> float:
        return total_night_surcharge(is_evening, days, self.fee_per_day)


# Parent quote: 10 EUR per booked day.
PARENT_NIGHT_SURCHARGE = NightSurchargeRule(fee_per_day=10.0, currency="EUR")
# Caregiver pay: 100 MAD per worked shift.
CAREGIVER_NIGHT_SURCHARGE = NightSurchargeRule(fee_per_day=100.0, currency="MAD")


def _ends_after_night_start(hour: int, minute: int, second: int = 0) -> bool:
    return (hour, minute, second) > (NIGHT_START_HOUR, 0, 0)


def is_evening_booking(start: TimeSlot, end: TimeSlot) -> bool:
    """Flag quoted slots that incur the night surcharge.

    Checked against absolute clock hours. A window whose end is on the
    next calendar day (18:00 -> 1:00) has run through the night as well.
    """
    if start.hour < NIGHT_END_HOUR:
        return True
    if _ends_after_night_start(end.hour, end.minute):
        return True
    return end.decimal_hour <= start.decimal_hour


def is_evening_shift(clock_in: datetime, clock_out: datetime) -> bool:
    """The booking predicate applied to real clock-in/clock-out timestamps."""
    if clock_in.hour < NIGHT_END_HOUR:
        return True
    if _ends_after_night_start(clock_out.hour, clock_out.minute, clock_out.second):
        return True
    return clock_out.date() > clock_in.date()


def total_night_surcharge(is_evening: bool, days: int, fee_per_day: float) -> float:
    if not is_evening:
        return 0.0
    return fee_per_day * days
