"""Live admin toasts driven by the booking state differ."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from nannyshift.differ import BookingEvent, BookingSnapshotMap, diff

if TYPE_CHECKING:
    from nannyshift.database import InMemoryKeyValueDatabase

logger = structlog.get_logger(__name__)

NowFn = Callable[[], datetime]
SleepFn = Callable[[float], Awaitable[None]]


class AdminNotificationFeed:
    """
    Holds the previous snapshot between polls and the toasts on screen.

    Written by a single polling task; request handlers only read it or
    dismiss toasts.
    """

    def __init__(self, max_new: int = 3, max_total: int = 5) -> None:
        self.max_new = max_new
        self.max_total = max_total
        self._previous: dict | None = None
        self._dismissed: set[str] = set()
        self._toasts: list[BookingEvent] = []

    @property
    def primed(self) -> bool:
        return self._previous is not None

    @property
    def toasts(self) -> list[BookingEvent]:
        return list(self._toasts)

    def poll(self, current: BookingSnapshotMap, observed_at: datetime) -> list[BookingEvent]:
        """Diff ``current`` against the last poll and surface new toasts.

        The first poll only records a baseline so existing bookings do not
        flood the screen.
        """
        if self._previous is None:
            self._previous = dict(current)
            logger.info("notifications.primed", bookings=len(current))
            return []

        events = diff(self._previous, current, observed_at)
        self._previous = dict(current)

        fresh = [e for e in events if e.event_id not in self._dismissed][: self.max_new]
        # event ids carry the poll timestamp, so old dismissals can never match again
        self._dismissed.clear()
        self._toasts = (fresh + self._toasts)[: self.max_total]

        if events:
            logger.info(
                "notifications.poll",
                detected=len(events),
                surfaced=len(fresh),
                kinds=[e.kind.value for e in events],
            )
        return fresh

    def dismiss(self, event_id: str) -> bool:
        self._dismissed.add(event_id)
        before = len(self._toasts)
        self._toasts = [t for t in self._toasts if t.event_id != event_id]
        return len(self._toasts) != before


async def poll_bookings(
    db: InMemoryKeyValueDatabase,
    feed: AdminNotificationFeed,
    *,
    now_fn: NowFn,
    sleep_fn: SleepFn,
    interval: float,
) -> None:
    try:
        while True:
            feed.poll(db.snapshot(), now_fn())
            await sleep_fn(interval)
    except asyncio.CancelledError:
        logger.info("notifications.stopped")
        return
