"""Per-caregiver payroll summary over a date range."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from nannyshift.differ import BookingStatus
from nannyshift.models import Booking, Caregiver
from nannyshift.reconcile import estimate_pay, reconcile
from nannyshift.surcharge import CAREGIVER_NIGHT_SURCHARGE, NightSurchargeRule

UNASSIGNED = "Unassigned"


@dataclass
class PayrollRow:
    caregiver: str
    hourly_rate: float
    first_booking: date
    last_booking: date
    total_bookings: int = 0
    completed_bookings: int = 0
    actual_hours: float = 0.0
    estimated_hours: float = 0.0
    base_pay: float = 0.0
    night_fees: float = 0.0
    total_pay: float = 0.0
    client_revenue: float = 0.0


def _in_range(day: date, date_from: Optional[date], date_to: Optional[date]) -> bool:
    if date_from is not None and day < date_from:
        return False
    if date_to is not None and day > date_to:
        return False
    return True


def build_payroll_report(
    bookings: Iterable[Booking],
    caregivers: Mapping[str, Caregiver],
    *,
    default_rate: float,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    rule: NightSurchargeRule = CAREGIVER_NIGHT_SURCHARGE,
) -> List[PayrollRow]:
    """
    Summarise pay per caregiver.

    Cancelled bookings are left out. A booking with clock data is paid on
    what was actually worked; otherwise its quoted slots give an estimate.
    """
    rows: dict[str, PayrollRow] = {}

    for b in bookings:
        if b.status == BookingStatus.CANCELLED or not _in_range(b.date, date_from, date_to):
            continue

        caregiver = caregivers.get(b.nanny_id) if b.nanny_id else None
        key = b.nanny_name or (caregiver.name if caregiver else "") or UNASSIGNED
        rate = caregiver.hourly_rate if caregiver and caregiver.hourly_rate is not None else default_rate

        row = rows.get(key)
        if row is None:
            row = rows[key] = PayrollRow(
                caregiver=key, hourly_rate=rate, first_booking=b.date, last_booking=b.date
            )

        row.total_bookings += 1
        if b.status == BookingStatus.COMPLETED:
            row.completed_bookings += 1
        row.first_booking = min(row.first_booking, b.date)
        row.last_booking = max(row.last_booking, b.date)

        estimated = estimate_pay(b.window(), rate, rule)
        row.estimated_hours += estimated.hours_worked

        record = b.shift_record()
        if record.is_terminal:
            pay = reconcile(record, rate, rule)
            row.actual_hours += pay.hours_worked
        else:
            pay = estimated

        row.base_pay += pay.base_pay
        row.night_fees += pay.night_surcharge
        row.total_pay += pay.total
        row.client_revenue += b.total_price or 0

    return sorted(rows.values(), key=lambda r: r.caregiver.lower())
