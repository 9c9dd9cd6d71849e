"""Classify booking status transitions between two polled snapshots.

The differ holds no memory: the caller threads the previous snapshot into
each call. Dismissal de-duplication belongs to the consumer, which keys it
on ``BookingEvent.event_id``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class EventKind(str, Enum):
    NEW_BOOKING = "new_booking"
    CONFIRMED = "confirmation"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BookingProjection:
    """The slice of a booking the admin notifications look at."""

    status: str
    client_name: str = ""
    date: str = ""
    nanny_name: str = ""


BookingSnapshotMap = Mapping[Any, BookingProjection]


@dataclass(frozen=True)
class BookingEvent:
    kind: EventKind
    booking_id: Any
    detail: str = ""
    observed_at: Optional[datetime] = None

    @property
    def event_id(self) -> str:
        if self.observed_at is None:
            return f"{self.kind.value}-{self.booking_id}"
        stamp = int(self.observed_at.timestamp() * 1000)
        return f"{self.kind.value}-{self.booking_id}-{stamp}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.event_id,
            "kind": self.kind.value,
            "bookingId": self.booking_id,
            "detail": self.detail,
            "observedAt": self.observed_at.isoformat() if self.observed_at else None,
        }


def _field(entry: Any, name: str) -> Any:
    if isinstance(entry, BookingProjection):
        return getattr(entry, name)
    if isinstance(entry, Mapping):
        return entry.get(name)
    return None


def _status(entry: Any) -> Optional[str]:
    status = _field(entry, "status")
    if isinstance(status, Enum):
        status = status.value
    if not isinstance(status, str) or not status:
        return None
    return status


def _detail(entry: Any, with_nanny: bool = False) -> str:
    parts = [_field(entry, "client_name") or "", _field(entry, "date") or ""]
    if with_nanny:
        parts.append(_field(entry, "nanny_name") or "")
    return " - ".join(str(p) for p in parts if p)


def diff(
    previous: Optional[BookingSnapshotMap],
    current: Optional[BookingSnapshotMap],
    observed_at: Optional[datetime] = None,
) -> List[BookingEvent]:
    """Events for every status transition from ``previous`` to ``current``.

    Events come back unfiltered in the iteration order of ``current``.
    Bookings that disappeared are not reported, and field changes without
    a status change (e.g. a nanny reassignment) produce nothing.
    """
    previous = previous if isinstance(previous, Mapping) else {}
    current = current if isinstance(current, Mapping) else {}

    events: List[BookingEvent] = []
    for booking_id, entry in current.items():
        now_status = _status(entry)
        if now_status is None:
            continue

        before = _status(previous.get(booking_id))
        if before is None:
            kind, detail = EventKind.NEW_BOOKING, _detail(entry)
        elif before == BookingStatus.PENDING.value and now_status == BookingStatus.CONFIRMED.value:
            kind, detail = EventKind.CONFIRMED, _detail(entry, with_nanny=True)
        elif now_status == BookingStatus.CANCELLED.value and before != BookingStatus.CANCELLED.value:
            kind, detail = EventKind.CANCELLED, _detail(entry)
        else:
            continue

        events.append(
            BookingEvent(kind=kind, booking_id=booking_id, detail=detail, observed_at=observed_at)
        )
    return events
