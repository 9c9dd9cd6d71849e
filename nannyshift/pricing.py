"""Planned price of a booking, computed from the selected slots.

The same pure calculation backs the initial booking, an extension (only the
end slot moves) and a rebook (fresh window), so all three agree to the cent.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from nannyshift.duration import BookingWindow, hours_between
from nannyshift.errors import InvalidInput
from nannyshift.surcharge import (
    PARENT_NIGHT_SURCHARGE,
    NightSurchargeRule,
    is_evening_booking,
)
from nannyshift.timeslots import TimeSlot, slots_after


def round_money(amount: float) -> float:
    """Round half-up to whole currency units."""
    return float(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _check_rate(hourly_rate: float) -> None:
    if hourly_rate is None or hourly_rate < 0:
        raise InvalidInput(f"hourly rate must be zero or positive, got {hourly_rate!r}")


@dataclass(frozen=True)
class PricedQuote:
    hours: float
    day_count: int
    base_price: float
    night_surcharge: float
    total: float
    is_evening: bool = False


@dataclass(frozen=True)
class Extension:
    current: PricedQuote
    extended: PricedQuote

    @property
    def additional_hours(self) -> float:
        return self.extended.hours - self.current.hours

    @property
    def additional_cost(self) -> float:
        return self.extended.total - self.current.total


@dataclass(frozen=True)
class QuoteAudit:
    expected_total: float
    stored_total: float

    @property
    def matches(self) -> bool:
        return self.expected_total == self.stored_total


def quote(
    window: BookingWindow,
    hourly_rate: float,
    rule: NightSurchargeRule = PARENT_NIGHT_SURCHARGE,
) -> PricedQuote:
    """Price ``window`` at ``hourly_rate``.

    Hours are derived once per day-unit and the base price is rounded once
    on the aggregate, never per day.
    """
    _check_rate(hourly_rate)
    hours = hours_between(window.start_slot, window.end_slot)
    days = window.day_count
    base_price = round_money(hourly_rate * hours * days)
    evening = is_evening_booking(window.start_slot, window.end_slot)
    night_surcharge = rule.total(evening, days)
    return PricedQuote(
        hours=hours,
        day_count=days,
        base_price=base_price,
        night_surcharge=night_surcharge,
        total=base_price + night_surcharge,
        is_evening=evening,
    )


def rebook_quote(
    window: BookingWindow,
    hourly_rate: float,
    rule: NightSurchargeRule = PARENT_NIGHT_SURCHARGE,
) -> PricedQuote:
    """Quote a rebooking. Nothing carries over from the earlier booking."""
    return quote(window, hourly_rate, rule)


def extend_quote(
    window: BookingWindow,
    new_end: TimeSlot,
    hourly_rate: float,
    rule: NightSurchargeRule = PARENT_NIGHT_SURCHARGE,
) -> Extension:
    if not new_end > window.end_slot:
        raise InvalidInput(
            f"new end {new_end.label} must be after current end {window.end_slot.label}"
        )
    current = quote(window, hourly_rate, rule)
    extended = quote(window.with_end(new_end), hourly_rate, rule)
    if extended.hours <= current.hours:
        # only reachable when the current window already wraps past the start
        raise InvalidInput(f"ending at {new_end.label} does not extend the booking")
    return Extension(current=current, extended=extended)


def extension_options(window: BookingWindow) -> List[TimeSlot]:
    """End slots a booking can be extended to."""
    return [
        slot
        for slot in slots_after(window.end_slot)
        if hours_between(window.start_slot, slot) > window.hours
    ]


def audit_quote(
    window: BookingWindow,
    hourly_rate: float,
    stored_total: float,
    rule: NightSurchargeRule = PARENT_NIGHT_SURCHARGE,
) -> QuoteAudit:
    """Compare a persisted total against a freshly derived quote."""
    expected = quote(window, hourly_rate, rule)
    return QuoteAudit(expected_total=expected.total, stored_total=float(stored_total or 0))
