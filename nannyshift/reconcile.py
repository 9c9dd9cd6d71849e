"""Actual caregiver pay, computed from real clock-in/clock-out timestamps.

What a shift pays is independent of what the booking was quoted at: a shift
that ran long pays for the extra time, and a quoted evening that finished
early pays no night fee.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Tuple

from nannyshift.duration import BookingWindow
from nannyshift.errors import InvalidInput
from nannyshift.pricing import round_money
from nannyshift.surcharge import (
    CAREGIVER_NIGHT_SURCHARGE,
    NightSurchargeRule,
    is_evening_booking,
    is_evening_shift,
)


@dataclass(frozen=True)
class ShiftRecord:
    booking_id: int | str
    clock_in: Optional[datetime] = None
    clock_out: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.clock_in is not None and self.clock_out is None

    @property
    def is_terminal(self) -> bool:
        return self.clock_in is not None and self.clock_out is not None


@dataclass(frozen=True)
class PayBreakdown:
    hours_worked: float
    base_pay: float
    night_surcharge: float
    total: float


ZERO_PAY = PayBreakdown(hours_worked=0.0, base_pay=0.0, night_surcharge=0.0, total=0.0)


def hours_worked(clock_in: datetime, clock_out: datetime) -> float:
    """Elapsed wall-clock hours between two timestamps."""
    if clock_in is None or clock_out is None:
        raise InvalidInput("both clock-in and clock-out are required")
    try:
        elapsed = clock_out - clock_in
    except TypeError as exc:
        raise InvalidInput("clock-in and clock-out must both be naive or both be aware") from exc
    if elapsed.total_seconds() < 0:
        raise InvalidInput("clock-out is before clock-in")
    return elapsed.total_seconds() / 3600


def reconcile(
    record: ShiftRecord,
    hourly_rate: float,
    rule: NightSurchargeRule = CAREGIVER_NIGHT_SURCHARGE,
) -> PayBreakdown:
    """Pay for one terminal shift record.

    Multi-day bookings are the sum of several records, so the night fee is
    applied once per call.
    """
    if not record.is_terminal:
        raise InvalidInput(f"shift {record.booking_id} has not been clocked in and out")
    if hourly_rate is None or hourly_rate < 0:
        raise InvalidInput(f"hourly rate must be zero or positive, got {hourly_rate!r}")

    worked = hours_worked(record.clock_in, record.clock_out)
    base_pay = round_money(hourly_rate * worked)
    night = rule.total(is_evening_shift(record.clock_in, record.clock_out), 1)
    return PayBreakdown(
        hours_worked=worked,
        base_pay=base_pay,
        night_surcharge=night,
        total=base_pay + night,
    )


def estimate_pay(
    window: BookingWindow,
    hourly_rate: float,
    rule: NightSurchargeRule = CAREGIVER_NIGHT_SURCHARGE,
) -> PayBreakdown:
    """Pay estimated from the quoted slots, before any clock data exists."""
    if hourly_rate is None or hourly_rate < 0:
        raise InvalidInput(f"hourly rate must be zero or positive, got {hourly_rate!r}")
    hours = window.total_hours
    base_pay = round_money(hourly_rate * hours)
    night = rule.total(is_evening_booking(window.start_slot, window.end_slot), 1)
    return PayBreakdown(
        hours_worked=hours,
        base_pay=base_pay,
        night_surcharge=night,
        total=base_pay + night,
    )


def sum_pay(breakdowns: Iterable[PayBreakdown]) -> PayBreakdown:
    total = ZERO_PAY
    for b in breakdowns:
        total = PayBreakdown(
            hours_worked=total.hours_worked + b.hours_worked,
            base_pay=total.base_pay + b.base_pay,
            night_surcharge=total.night_surcharge + b.night_surcharge,
            total=total.total + b.total,
        )
    return total


def pay_by_caregiver(
    records: Iterable[Tuple[str, ShiftRecord]],
    hourly_rate: float,
    rule: NightSurchargeRule = CAREGIVER_NIGHT_SURCHARGE,
) -> Dict[str, PayBreakdown]:
    """Reduce terminal records into one PayBreakdown per caregiver.

    Active and unstarted records are skipped.
    """
    grouped: Dict[str, list[PayBreakdown]] = {}
    for caregiver_id, record in records:
        if not record.is_terminal:
            continue
        grouped.setdefault(caregiver_id, []).append(reconcile(record, hourly_rate, rule))
    return {caregiver_id: sum_pay(items) for caregiver_id, items in grouped.items()}


def format_hours_worked(clock_in: datetime, clock_out: datetime) -> str:
    """``"4h 30m"`` style summary of a finished shift."""
    hours = hours_worked(clock_in, clock_out)
    h = math.floor(hours)
    m = round((hours - h) * 60)
    if m == 60:
        h, m = h + 1, 0
    return f"{h}h {m}m"


def format_elapsed(seconds: float) -> str:
    """``"HH:MM:SS"`` timer for a shift that is still running."""
    total = max(0, int(seconds))
    h, rest = divmod(total, 3600)
    m, s = divmod(rest, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
