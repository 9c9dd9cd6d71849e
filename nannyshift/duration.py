"""Billable duration of a booking window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from nannyshift.errors import InvalidInput
from nannyshift.timeslots import TimeSlot, parse_time


def crosses_midnight(start: TimeSlot, end: TimeSlot) -> bool:
    """True when the window ends on the next calendar day (or wraps fully)."""
    return end.decimal_hour <= start.decimal_hour


def hours_between(start: TimeSlot, end: TimeSlot) -> float:
    """
    Hours from ``start`` to ``end``, wrapping through midnight.

    10:00 -> 14:00 is 4h, 18:00 -> 1:00 is 7h. A window that starts and
    ends on the same slot uses every slot of the day and is 24h, not 0.
    """
    if not crosses_midnight(start, end):
        return end.decimal_hour - start.decimal_hour
    return (24 - start.decimal_hour) + end.decimal_hour


def day_count(start_date: date, end_date: Optional[date] = None) -> int:
    if end_date is None:
        return 1
    if end_date < start_date:
        raise InvalidInput("end date must be on or after start date")
    return max(1, (end_date - start_date).days + 1)


def _parse_date(value: date | str, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInput(f"{field} must be an ISO date, got {value!r}") from exc


@dataclass(frozen=True)
class BookingWindow:
    start_slot: TimeSlot
    end_slot: TimeSlot
    start_date: date
    end_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.end_date is not None and self.end_date < self.start_date:
            raise InvalidInput("end date must be on or after start date")

    @classmethod
    def from_strings(
        cls,
        start_time: str,
        end_time: str,
        start_date: date | str,
        end_date: date | str | None = None,
    ) -> BookingWindow:
        """Build a window from raw form values, parsing each field once."""
        return cls(
            start_slot=parse_time(start_time),
            end_slot=parse_time(end_time),
            start_date=_parse_date(start_date, "start date"),
            end_date=_parse_date(end_date, "end date") if end_date else None,
        )

    @property
    def day_count(self) -> int:
        return day_count(self.start_date, self.end_date)

    @property
    def hours(self) -> float:
        """Hours per day-unit; not multiplied by the day count."""
        return hours_between(self.start_slot, self.end_slot)

    @property
    def total_hours(self) -> float:
        return self.hours * self.day_count

    def with_end(self, end_slot: TimeSlot) -> BookingWindow:
        return BookingWindow(
            start_slot=self.start_slot,
            end_slot=end_slot,
            start_date=self.start_date,
            end_date=self.end_date,
        )
