"""Half-hour wall-clock slots on a business day running 06:00 -> 05:30.

Evening and overnight shifts are common, so slots are ordered by a business
day that starts at 06:00 and wraps through midnight instead of by raw 24h
clock order. A slot from 18:00 therefore sorts before a slot at 01:00.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from nannyshift.errors import InvalidInput

BUSINESS_DAY_START_HOUR = 6
SLOTS_PER_DAY = 48

_H_FORMAT = re.compile(r"^(\d{1,2})h(\d{2})$", re.IGNORECASE)
_COLON_FORMAT = re.compile(r"^(\d{1,2}):(\d{2})(?:\s*([ap]m))?$", re.IGNORECASE)


@dataclass(frozen=True)
class TimeSlot:
    """A point on the half-hour grid of a 24-hour clock."""

    hour: int
    minute: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.hour, int) or not 0 <= self.hour <= 23:
            raise InvalidInput(f"hour must be in 0..23, got {self.hour!r}")
        if self.minute not in (0, 30):
            raise InvalidInput(f"minute must be 0 or 30, got {self.minute!r}")

    @property
    def decimal_hour(self) -> float:
        return self.hour + self.minute / 60

    @property
    def order_key(self) -> int:
        return order_key(self)

    @property
    def value(self) -> str:
        """Form value, e.g. ``"9:00"``."""
        return f"{self.hour}:{self.minute:02d}"

    @property
    def label(self) -> str:
        """Display label, e.g. ``"09h00"``."""
        return f"{self.hour:02d}h{self.minute:02d}"

    def __lt__(self, other: TimeSlot) -> bool:
        if not isinstance(other, TimeSlot):
            return NotImplemented
        return order_key(self) < order_key(other)

    def __le__(self, other: TimeSlot) -> bool:
        if not isinstance(other, TimeSlot):
            return NotImplemented
        return order_key(self) <= order_key(other)

    def __gt__(self, other: TimeSlot) -> bool:
        if not isinstance(other, TimeSlot):
            return NotImplemented
        return order_key(self) > order_key(other)

    def __ge__(self, other: TimeSlot) -> bool:
        if not isinstance(other, TimeSlot):
            return NotImplemented
        return order_key(self) >= order_key(other)

    def __str__(self) -> str:
        return self.value


def order_key(slot: TimeSlot) -> int:
    """Position of ``slot`` in the business day: 06:00 -> 0, 05:30 -> 47."""
    hours_into_day = (slot.hour - BUSINESS_DAY_START_HOUR + 24) % 24
    return hours_into_day * 2 + slot.minute // 30


def compare(a: TimeSlot, b: TimeSlot) -> int:
    ka, kb = order_key(a), order_key(b)
    return (ka > kb) - (ka < kb)


def parse_time(text: str) -> TimeSlot:
    """
    Parse the time formats found in bookings into a TimeSlot.

    Accepts ``"9:00"``, ``"14:30"``, ``"09h00"``, ``"14h30"`` and
    12-hour forms such as ``"2:30 PM"``. Anything else raises InvalidInput.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidInput("time is required")
    raw = text.strip()

    match = _H_FORMAT.match(raw)
    if match:
        return _slot(int(match.group(1)), int(match.group(2)), raw)

    match = _COLON_FORMAT.match(raw)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))
        meridiem = (match.group(3) or "").lower()
        if meridiem:
            if not 1 <= hour <= 12:
                raise InvalidInput(f"invalid 12-hour time: {raw!r}")
            if meridiem == "pm" and hour < 12:
                hour += 12
            elif meridiem == "am" and hour == 12:
                hour = 0
        return _slot(hour, minute, raw)

    raise InvalidInput(f"unrecognised time format: {raw!r}")


def _slot(hour: int, minute: int, raw: str) -> TimeSlot:
    try:
        return TimeSlot(hour, minute)
    except InvalidInput as exc:
        raise InvalidInput(f"{raw!r} is not a half-hour slot: {exc}") from exc


def _build_time_slots() -> List[TimeSlot]:
    slots = []
    for i in range(SLOTS_PER_DAY):
        hour = (BUSINESS_DAY_START_HOUR + i // 2) % 24
        slots.append(TimeSlot(hour, (i % 2) * 30))
    return slots


TIME_SLOTS: List[TimeSlot] = _build_time_slots()


def slots_after(slot: TimeSlot) -> List[TimeSlot]:
    """Slots strictly later than ``slot`` in business-day order."""
    return TIME_SLOTS[order_key(slot) + 1 :]
