from datetime import date

import pytest

from nannyshift.duration import BookingWindow, crosses_midnight, day_count, hours_between
from nannyshift.errors import InvalidInput
from nannyshift.pricing import (
    audit_quote,
    extend_quote,
    extension_options,
    quote,
    rebook_quote,
    round_money,
)
from nannyshift.surcharge import (
    NightSurchargeRule,
    is_evening_booking,
)
from nannyshift.timeslots import TimeSlot

D = "2025-07-02"


def _window(start: str, end: str, start_date: str = D, end_date: str | None = None) -> BookingWindow:
    return BookingWindow.from_strings(start, end, start_date, end_date)


def test_daytime_booking() -> None:
    q = quote(_window("10:00", "14:00"), 10)
    assert q.hours == 4
    assert q.day_count == 1
    assert q.is_evening is False
    assert q.night_surcharge == 0
    assert q.total == 40


def test_overnight_booking_pays_night_fee() -> None:
    q = quote(_window("18:00", "1:00"), 10)
    assert q.hours == 7
    assert q.is_evening is True
    assert q.night_surcharge == 10
    assert q.base_price == 70
    assert q.total == 80


def test_two_day_booking() -> None:
    q = quote(_window("9:00", "17:00", D, "2025-07-03"), 10)
    assert q.day_count == 2
    assert q.hours == 8
    assert q.base_price == 160
    assert q.total == 160


def test_evening_fee_is_charged_per_day() -> None:
    q = quote(_window("18:00", "23:00", D, "2025-07-04"), 10)
    assert q.day_count == 3
    assert q.night_surcharge == 30
    assert q.total == 150 + 30


def test_same_start_and_end_is_a_full_day() -> None:
    assert hours_between(TimeSlot(6, 0), TimeSlot(6, 0)) == 24
    assert quote(_window("6:00", "6:00"), 10).hours == 24


@pytest.mark.parametrize(
    "start, end",
    [("10:00", "14:00"), ("18:00", "1:00"), ("5:00", "9:30"), ("12:30", "19:30"), ("22:00", "22:00")],
)
def test_total_is_base_plus_surcharge(start: str, end: str) -> None:
    q = quote(_window(start, end, D, "2025-07-03"), 12.5)
    assert q.total == q.base_price + q.night_surcharge
    assert q.hours > 0


def test_base_price_rounds_half_up_once() -> None:
    # 12.5 would round to 12 with banker's rounding
    assert quote(_window("10:00", "11:00"), 12.5).base_price == 13
    assert quote(_window("9:00", "13:30"), 31.25).base_price == 141
    assert round_money(2.5) == 3
    assert round_money(2.4999) == 2


def test_custom_rule_and_rate_validation() -> None:
    rule = NightSurchargeRule(fee_per_day=100, currency="MAD")
    assert quote(_window("18:00", "1:00"), 0, rule).total == 100
    with pytest.raises(InvalidInput):
        quote(_window("10:00", "14:00"), -1)
    with pytest.raises(InvalidInput):
        NightSurchargeRule(fee_per_day=-5, currency="EUR")


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("8:00", "17:00", False),
        ("15:00", "19:00", False),
        ("15:00", "19:30", True),
        ("6:30", "10:00", True),
        ("18:00", "1:00", True),
    ],
)
def test_evening_booking_predicate(start: str, end: str, expected: bool) -> None:
    w = _window(start, end)
    assert is_evening_booking(w.start_slot, w.end_slot) is expected


def test_crosses_midnight() -> None:
    assert crosses_midnight(TimeSlot(18, 0), TimeSlot(1, 0))
    assert crosses_midnight(TimeSlot(9, 0), TimeSlot(9, 0))
    assert not crosses_midnight(TimeSlot(1, 0), TimeSlot(5, 0))


def test_day_count() -> None:
    assert day_count(date(2025, 7, 2)) == 1
    assert day_count(date(2025, 7, 2), date(2025, 7, 2)) == 1
    assert day_count(date(2025, 7, 2), date(2025, 7, 4)) == 3
    with pytest.raises(InvalidInput):
        day_count(date(2025, 7, 2), date(2025, 7, 1))


def test_window_rejects_bad_dates() -> None:
    with pytest.raises(InvalidInput):
        _window("9:00", "17:00", "2025-07-02", "2025-07-01")
    with pytest.raises(InvalidInput):
        _window("9:00", "17:00", "07/02/2025")
    assert _window("9:00", "17:00", D, "").end_date is None


def test_extend_daytime_booking() -> None:
    ext = extend_quote(_window("10:00", "14:00"), TimeSlot(16, 0), 10)
    assert ext.current.total == 40
    assert ext.extended.total == 60
    assert ext.additional_hours == 2
    assert ext.additional_cost == 20


def test_extend_into_the_night() -> None:
    ext = extend_quote(_window("18:00", "23:00"), TimeSlot(1, 0), 10)
    assert ext.additional_hours == 2
    assert ext.current.night_surcharge == ext.extended.night_surcharge == 10
    assert ext.additional_cost == 20


def test_extension_picks_up_night_fee() -> None:
    ext = extend_quote(_window("14:00", "18:00"), TimeSlot(20, 0), 10)
    assert ext.current.night_surcharge == 0
    assert ext.extended.night_surcharge == 10
    assert ext.additional_cost == 30


@pytest.mark.parametrize("new_end", [TimeSlot(12, 0), TimeSlot(14, 0)])
def test_extend_rejects_earlier_or_same_end(new_end: TimeSlot) -> None:
    with pytest.raises(InvalidInput):
        extend_quote(_window("10:00", "14:00"), new_end, 10)


def test_extension_options_only_add_hours() -> None:
    window = _window("10:00", "14:00")
    options = extension_options(window)
    assert options[0] == TimeSlot(14, 30)
    assert options[-1] == TimeSlot(5, 30)
    assert len(options) == 31

    wrapped = _window("10:00", "8:00")
    options = extension_options(wrapped)
    assert TimeSlot(10, 0) in options
    assert TimeSlot(10, 30) not in options
    with pytest.raises(InvalidInput):
        extend_quote(wrapped, TimeSlot(10, 30), 10)

    assert extension_options(_window("6:00", "5:30")) == []


def test_rebook_is_a_fresh_quote() -> None:
    window = _window("18:00", "1:00", D, "2025-07-03")
    assert rebook_quote(window, 10) == quote(window, 10)


def test_audit_quote() -> None:
    window = _window("10:00", "14:00")
    assert audit_quote(window, 10, 40).matches
    audit = audit_quote(window, 10, 35)
    assert not audit.matches
    assert audit.expected_total == 40
    assert audit_quote(window, 10, None).stored_total == 0
