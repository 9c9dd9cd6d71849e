"""
Stored records for caregivers and bookings.
"""

import datetime as dt

from pydantic import BaseModel

from nannyshift.differ import BookingProjection, BookingStatus
from nannyshift.duration import BookingWindow
from nannyshift.reconcile import ShiftRecord

ALLOWED_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class Caregiver(BaseModel):
    id: str
    name: str
    phone: str = ""
    hourly_rate: float | None = None  # falls back to the configured caregiver rate


class Booking(BaseModel):
    id: int
    client_name: str
    date: dt.date
    end_date: dt.date | None = None
    start_time: str  # "HHhMM" label, parsed into a TimeSlot on use
    end_time: str
    status: BookingStatus = BookingStatus.PENDING
    nanny_id: str | None = None
    nanny_name: str = ""
    total_price: float = 0.0  # parent quote at booking time
    clock_in: dt.datetime | None = None
    clock_out: dt.datetime | None = None
    created_at: dt.datetime | None = None
    notes: str = ""

    def window(self) -> BookingWindow:
        return BookingWindow.from_strings(
            self.start_time, self.end_time, self.date, self.end_date
        )

    def shift_record(self) -> ShiftRecord:
        return ShiftRecord(
            booking_id=self.id, clock_in=self.clock_in, clock_out=self.clock_out
        )

    def projection(self) -> BookingProjection:
        return BookingProjection(
            status=self.status.value,
            client_name=self.client_name,
            date=self.date.isoformat(),
            nanny_name=self.nanny_name,
        )
