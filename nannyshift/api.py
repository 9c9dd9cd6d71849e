import asyncio
import itertools
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime
from zoneinfo import ZoneInfo

import structlog
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from nannyshift.config import Settings, get_settings
from nannyshift.database import ClockInConflict, InMemoryKeyValueDatabase
from nannyshift.differ import BookingStatus
from nannyshift.duration import BookingWindow
from nannyshift.errors import InvalidInput
from nannyshift.logconfig import configure_logging
from nannyshift.models import Booking, Caregiver, can_transition
from nannyshift.notifications import AdminNotificationFeed, poll_bookings
from nannyshift.payroll import build_payroll_report
from nannyshift.pricing import (
    PricedQuote,
    audit_quote,
    extend_quote,
    extension_options,
    quote,
    rebook_quote,
)
from nannyshift.reconcile import (
    PayBreakdown,
    ShiftRecord,
    format_elapsed,
    format_hours_worked,
    reconcile,
)
from nannyshift.timeslots import parse_time

router = APIRouter()
logger = structlog.get_logger(__name__)

Database = InMemoryKeyValueDatabase[str, Booking | Caregiver]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class QuoteRequest(_CamelModel):
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    start_date: date = Field(alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    hourly_rate: float | None = Field(default=None, alias="hourlyRate")


class BookingCreateRequest(_CamelModel):
    client_name: str = Field(alias="clientName", min_length=1)
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    start_date: date = Field(alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    nanny_id: str | None = Field(default=None, alias="nannyId")
    notes: str = ""


class StatusUpdateRequest(_CamelModel):
    status: BookingStatus


class ExtensionRequest(_CamelModel):
    end_time: str = Field(alias="endTime")
    hourly_rate: float | None = Field(default=None, alias="hourlyRate")


class ReconcileRequest(_CamelModel):
    clock_in: datetime = Field(alias="clockIn")
    clock_out: datetime = Field(alias="clockOut")
    hourly_rate: float | None = Field(default=None, alias="hourlyRate")


def _quote_body(q: PricedQuote) -> dict:
    return {
        "hours": q.hours,
        "dayCount": q.day_count,
        "basePrice": q.base_price,
        "nightSurcharge": q.night_surcharge,
        "total": q.total,
        "isEvening": q.is_evening,
    }


def _pay_body(p: PayBreakdown) -> dict:
    return {
        "hoursWorked": p.hours_worked,
        "basePay": p.base_pay,
        "nightSurcharge": p.night_surcharge,
        "total": p.total,
    }


def _db(request: Request) -> Database:
    return request.app.state.database


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_booking(db: Database, booking_id: int) -> Booking:
    booking = db.get(f"booking:{booking_id}")
    if not booking or not isinstance(booking, Booking):
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


def _caregiver_rate(db: Database, settings: Settings, caregiver_id: str | None) -> float:
    caregiver = db.get(f"caregiver:{caregiver_id}") if caregiver_id else None
    if isinstance(caregiver, Caregiver) and caregiver.hourly_rate is not None:
        return caregiver.hourly_rate
    return settings.caregiver_hourly_rate


@router.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/quotes")
async def create_quote(payload: QuoteRequest, request: Request) -> dict:
    settings = _settings(request)
    window = BookingWindow.from_strings(
        payload.start_time, payload.end_time, payload.start_date, payload.end_date
    )
    rate = payload.hourly_rate if payload.hourly_rate is not None else settings.parent_hourly_rate
    q = quote(window, rate, settings.parent_rule())
    logger.info("quote.computed", hours=q.hours, day_count=q.day_count, total=q.total)
    return _quote_body(q)


@router.post("/bookings")
async def create_booking(payload: BookingCreateRequest, request: Request) -> dict:
    db = _db(request)
    settings = _settings(request)

    nanny_name = ""
    if payload.nanny_id is not None:
        caregiver = db.get(f"caregiver:{payload.nanny_id}")
        if not caregiver or not isinstance(caregiver, Caregiver):
            raise HTTPException(status_code=404, detail="Caregiver not found")
        nanny_name = caregiver.name

    window = BookingWindow.from_strings(
        payload.start_time, payload.end_time, payload.start_date, payload.end_date
    )
    q = quote(window, settings.parent_hourly_rate, settings.parent_rule())

    booking = Booking(
        id=next(request.app.state.booking_ids),
        client_name=payload.client_name.strip(),
        date=window.start_date,
        end_date=window.end_date,
        start_time=window.start_slot.label,
        end_time=window.end_slot.label,
        nanny_id=payload.nanny_id,
        nanny_name=nanny_name,
        total_price=q.total,
        created_at=request.app.state.now_fn(),
        notes=payload.notes,
    )
    db.put(f"booking:{booking.id}", booking)
    logger.info("booking.created", booking_id=booking.id, total=booking.total_price)
    return {"booking": booking.model_dump(mode="json"), "quote": _quote_body(q)}


@router.patch("/bookings/{booking_id}/status")
async def update_booking_status(
    booking_id: int, payload: StatusUpdateRequest, request: Request
) -> dict:
    db = _db(request)
    booking = _get_booking(db, booking_id)

    if not can_transition(booking.status, payload.status):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid transition: {booking.status.value} -> {payload.status.value}",
        )

    booking.status = payload.status
    db.put(f"booking:{booking_id}", booking)
    return {"booking_id": booking.id, "status": booking.status.value}


@router.get("/bookings/{booking_id}/extension-options")
async def get_extension_options(booking_id: int, request: Request) -> dict:
    booking = _get_booking(_db(request), booking_id)
    return {
        "booking_id": booking.id,
        "endTimes": [slot.label for slot in extension_options(booking.window())],
    }


@router.post("/bookings/{booking_id}/extension-quote")
async def quote_extension(
    booking_id: int, payload: ExtensionRequest, request: Request
) -> dict:
    settings = _settings(request)
    booking = _get_booking(_db(request), booking_id)
    rate = payload.hourly_rate if payload.hourly_rate is not None else settings.parent_hourly_rate

    ext = extend_quote(booking.window(), parse_time(payload.end_time), rate, settings.parent_rule())
    return {
        "booking_id": booking.id,
        "currentHours": ext.current.hours,
        "hours": ext.extended.hours,
        "additionalHours": ext.additional_hours,
        "basePrice": ext.extended.base_price,
        "nightSurcharge": ext.extended.night_surcharge,
        "total": ext.extended.total,
        "additionalCost": ext.additional_cost,
    }


@router.get("/bookings/{booking_id}/price-audit")
async def audit_booking_price(booking_id: int, request: Request) -> dict:
    settings = _settings(request)
    booking = _get_booking(_db(request), booking_id)
    audit = audit_quote(
        booking.window(), settings.parent_hourly_rate, booking.total_price, settings.parent_rule()
    )
    if not audit.matches:
        logger.warning(
            "quote.mismatch",
            booking_id=booking.id,
            stored=audit.stored_total,
            expected=audit.expected_total,
        )
    return {
        "booking_id": booking.id,
        "storedTotal": audit.stored_total,
        "expectedTotal": audit.expected_total,
        "matches": audit.matches,
    }


@router.post("/bookings/{booking_id}/rebook")
async def rebook(booking_id: int, payload: QuoteRequest, request: Request) -> dict:
    db = _db(request)
    settings = _settings(request)
    previous = _get_booking(db, booking_id)

    window = BookingWindow.from_strings(
        payload.start_time, payload.end_time, payload.start_date, payload.end_date
    )
    rate = payload.hourly_rate if payload.hourly_rate is not None else settings.parent_hourly_rate
    q = rebook_quote(window, rate, settings.parent_rule())

    booking = Booking(
        id=next(request.app.state.booking_ids),
        client_name=previous.client_name,
        date=window.start_date,
        end_date=window.end_date,
        start_time=window.start_slot.label,
        end_time=window.end_slot.label,
        nanny_id=previous.nanny_id,
        nanny_name=previous.nanny_name,
        total_price=q.total,
        created_at=request.app.state.now_fn(),
        notes=previous.notes,
    )
    db.put(f"booking:{booking.id}", booking)
    logger.info("booking.rebooked", booking_id=booking.id, from_booking_id=previous.id)
    return {"booking": booking.model_dump(mode="json"), "quote": _quote_body(q)}


@router.post("/bookings/{booking_id}/clock-in")
async def clock_in(booking_id: int, request: Request) -> dict:
    db = _db(request)
    booking = _get_booking(db, booking_id)
    if booking.status != BookingStatus.CONFIRMED:
        raise HTTPException(status_code=400, detail="Only confirmed bookings can be clocked in")

    try:
        booking = db.clock_in_if_idle(f"booking:{booking_id}", request.app.state.now_fn())
    except ClockInConflict as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return {"booking_id": booking.id, "clockIn": booking.clock_in.isoformat()}


@router.post("/bookings/{booking_id}/clock-out")
async def clock_out(booking_id: int, request: Request) -> dict:
    db = _db(request)
    settings = _settings(request)
    _get_booking(db, booking_id)

    try:
        booking = db.clock_out(f"booking:{booking_id}", request.app.state.now_fn())
    except ClockInConflict as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    pay = reconcile(
        booking.shift_record(),
        _caregiver_rate(db, settings, booking.nanny_id),
        settings.caregiver_rule(),
    )
    return {
        "booking_id": booking.id,
        "status": booking.status.value,
        "clockIn": booking.clock_in.isoformat(),
        "clockOut": booking.clock_out.isoformat(),
        "worked": format_hours_worked(booking.clock_in, booking.clock_out),
        "pay": _pay_body(pay),
    }


@router.get("/bookings/{booking_id}/pay")
async def get_booking_pay(booking_id: int, request: Request) -> dict:
    db = _db(request)
    settings = _settings(request)
    booking = _get_booking(db, booking_id)
    pay = reconcile(
        booking.shift_record(),
        _caregiver_rate(db, settings, booking.nanny_id),
        settings.caregiver_rule(),
    )
    return {"booking_id": booking.id, **_pay_body(pay)}


@router.get("/caregivers/{caregiver_id}/active-shift")
async def get_active_shift(caregiver_id: str, request: Request) -> dict:
    db = _db(request)
    if not isinstance(db.get(f"caregiver:{caregiver_id}"), Caregiver):
        raise HTTPException(status_code=404, detail="Caregiver not found")

    booking = db.active_booking_for(caregiver_id)
    if booking is None:
        return {"caregiver_id": caregiver_id, "active": False}

    elapsed = (request.app.state.now_fn() - booking.clock_in).total_seconds()
    return {
        "caregiver_id": caregiver_id,
        "active": True,
        "booking_id": booking.id,
        "clockIn": booking.clock_in.isoformat(),
        "elapsed": format_elapsed(elapsed),
    }


def _wall_clock(ts: datetime, settings: Settings) -> datetime:
    # naive timestamps are taken as already local
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(ZoneInfo(settings.timezone))


@router.post("/shifts/reconcile")
async def reconcile_shift(payload: ReconcileRequest, request: Request) -> dict:
    settings = _settings(request)
    rate = payload.hourly_rate if payload.hourly_rate is not None else settings.caregiver_hourly_rate
    record = ShiftRecord(
        booking_id="adhoc",
        clock_in=_wall_clock(payload.clock_in, settings),
        clock_out=_wall_clock(payload.clock_out, settings),
    )
    return _pay_body(reconcile(record, rate, settings.caregiver_rule()))


@router.get("/reports/payroll")
async def payroll_report(
    request: Request,
    from_: date | None = Query(default=None, alias="from"),
    to: date | None = None,
) -> dict:
    db = _db(request)
    settings = _settings(request)
    if to is None:
        # bookings still ahead are not owed yet
        to = request.app.state.now_fn().date()
    if from_ is not None and to < from_:
        raise InvalidInput("'to' must be on or after 'from'")

    caregivers = {c.id: c for c in db.all() if isinstance(c, Caregiver)}
    rows = build_payroll_report(
        db.bookings(),
        caregivers,
        default_rate=settings.caregiver_hourly_rate,
        date_from=from_,
        date_to=to,
        rule=settings.caregiver_rule(),
    )
    return {
        "currency": settings.caregiver_currency,
        "results": [
            {
                "caregiver": r.caregiver,
                "hourlyRate": r.hourly_rate,
                "totalBookings": r.total_bookings,
                "completedBookings": r.completed_bookings,
                "actualHours": round(r.actual_hours, 2),
                "estimatedHours": round(r.estimated_hours, 2),
                "basePay": r.base_pay,
                "nightFees": r.night_fees,
                "totalPay": r.total_pay,
                "clientRevenue": r.client_revenue,
                "firstBooking": r.first_booking.isoformat(),
                "lastBooking": r.last_booking.isoformat(),
            }
            for r in rows
        ],
    }


@router.post("/admin/notifications/poll")
async def poll_notifications(request: Request) -> dict:
    feed: AdminNotificationFeed = request.app.state.notification_feed
    surfaced = feed.poll(_db(request).snapshot(), request.app.state.now_fn())
    return {
        "surfaced": [e.as_dict() for e in surfaced],
        "toasts": [e.as_dict() for e in feed.toasts],
    }


@router.get("/admin/notifications")
async def list_notifications(request: Request) -> dict:
    feed: AdminNotificationFeed = request.app.state.notification_feed
    return {"toasts": [e.as_dict() for e in feed.toasts]}


@router.post("/admin/notifications/{event_id}/dismiss")
async def dismiss_notification(event_id: str, request: Request) -> dict:
    feed: AdminNotificationFeed = request.app.state.notification_feed
    return {"id": event_id, "dismissed": feed.dismiss(event_id)}


async def _invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def start_notification_polling(app: FastAPI) -> asyncio.Task:
    task = asyncio.create_task(
        poll_bookings(
            app.state.database,
            app.state.notification_feed,
            now_fn=app.state.now_fn,
            sleep_fn=app.state.sleep_fn,
            interval=app.state.settings.poll_interval_seconds,
        )
    )
    app.state.polling_tasks.add(task)
    task.add_done_callback(app.state.polling_tasks.discard)
    return task


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    task = start_notification_polling(app)
    try:
        yield
    finally:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(lifespan=_lifespan)
    db: Database = InMemoryKeyValueDatabase()
    app.state.database = db
    app.state.settings = settings
    app.state.booking_ids = itertools.count(1)

    tz = ZoneInfo(settings.timezone)
    app.state.now_fn = lambda: datetime.now(tz)
    app.state.sleep_fn = asyncio.sleep

    app.state.notification_feed = AdminNotificationFeed(
        max_new=settings.max_new_toasts, max_total=settings.max_toasts
    )
    app.state.polling_tasks = set()

    app.add_exception_handler(InvalidInput, _invalid_input_handler)
    app.include_router(router)
    return app
