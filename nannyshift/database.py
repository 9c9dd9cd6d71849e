import threading
from collections.abc import Iterator, MutableMapping
from datetime import datetime
from typing import Generic, TypeVar

import structlog

from nannyshift.differ import BookingProjection, BookingStatus
from nannyshift.models import Booking, can_transition

K = TypeVar("K")
V = TypeVar("V")

logger = structlog.get_logger(__name__)


class ClockInConflict(Exception):
    """Raised when a clock-in would leave a caregiver with two active shifts."""


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}
        self._lock = threading.Lock()

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def delete(self, key: K) -> None:
        self._store.pop(key, None)

    def all(self) -> list[V]:
        return list(self._store.values())

    def clear(self) -> None:
        self._store.clear()

    def __iter__(self) -> Iterator[V]:
        return iter(self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def bookings(self) -> list[Booking]:
        return [v for v in self._store.values() if isinstance(v, Booking)]

    def active_booking_for(self, caregiver_id: str) -> Booking | None:
        return next(
            (
                b
                for b in self.bookings()
                if b.nanny_id == caregiver_id
                and b.clock_in is not None
                and b.clock_out is None
            ),
            None,
        )

    def clock_in_if_idle(self, key: K, clock_in_at: datetime) -> Booking:
        """
        Atomically start a shift.
        Refuses when the booking was already clocked in or its caregiver
        already has another active shift.
        """
        with self._lock:
            booking = self._store.get(key)
            if not isinstance(booking, Booking):
                raise KeyError(key)
            if booking.clock_in is not None:
                raise ClockInConflict(f"booking {booking.id} is already clocked in")
            if booking.nanny_id is None:
                raise ClockInConflict(f"booking {booking.id} has no caregiver assigned")
            active = self.active_booking_for(booking.nanny_id)
            if active is not None:
                raise ClockInConflict(
                    f"caregiver {booking.nanny_id} is still clocked in on booking {active.id}"
                )
            booking.clock_in = clock_in_at
            self._store[key] = booking

        logger.info(
            "shift.clock_in",
            booking_id=booking.id,
            caregiver_id=booking.nanny_id,
            at=clock_in_at.isoformat(),
        )
        return booking

    def clock_out(self, key: K, clock_out_at: datetime) -> Booking:
        """
        Finish an active shift and mark the booking completed.
        A booking cancelled mid-shift keeps its cancelled status.
        """
        with self._lock:
            booking = self._store.get(key)
            if not isinstance(booking, Booking):
                raise KeyError(key)
            if booking.clock_in is None or booking.clock_out is not None:
                raise ClockInConflict(f"booking {booking.id} has no active shift")
            booking.clock_out = clock_out_at
            if can_transition(booking.status, BookingStatus.COMPLETED):
                booking.status = BookingStatus.COMPLETED
            self._store[key] = booking

        logger.info(
            "shift.clock_out",
            booking_id=booking.id,
            caregiver_id=booking.nanny_id,
            at=clock_out_at.isoformat(),
        )
        return booking

    def snapshot(self) -> dict[int, BookingProjection]:
        """Projection of every booking, most recently created first."""
        ordered = sorted(
            self.bookings(),
            key=lambda b: (b.created_at is not None, b.created_at or datetime.min, b.id),
            reverse=True,
        )
        return {b.id: b.projection() for b in ordered}
