from datetime import UTC, datetime

import pytest

from nannyshift.duration import BookingWindow
from nannyshift.errors import InvalidInput
from nannyshift.reconcile import (
    ZERO_PAY,
    ShiftRecord,
    estimate_pay,
    format_elapsed,
    format_hours_worked,
    hours_worked,
    pay_by_caregiver,
    reconcile,
    sum_pay,
)
from nannyshift.surcharge import is_evening_shift


def _at(day: int, hour: int, minute: int = 0, second: int = 0) -> datetime:
    return datetime(2025, 7, day, hour, minute, second)


def test_hours_worked_from_timestamps() -> None:
    assert hours_worked(_at(2, 9), _at(2, 13, 30)) == 4.5


def test_daytime_shift_pay() -> None:
    pay = reconcile(ShiftRecord(1, _at(2, 9), _at(2, 13, 30)), 31.25)
    assert pay.hours_worked == 4.5
    assert pay.base_pay == 141  # 140.625 rounded half-up
    assert pay.night_surcharge == 0
    assert pay.total == 141


def test_pay_ignores_the_originating_booking() -> None:
    a = reconcile(ShiftRecord(1, _at(2, 9), _at(2, 17)), 31.25)
    b = reconcile(ShiftRecord("other", _at(2, 9), _at(2, 17)), 31.25)
    assert a == b


def test_evening_and_overnight_shifts() -> None:
    late = reconcile(ShiftRecord(1, _at(2, 18), _at(2, 23, 15)), 31.25)
    assert late.hours_worked == 5.25
    assert late.base_pay == 164
    assert late.night_surcharge == 100
    assert late.total == 264

    overnight = reconcile(ShiftRecord(2, _at(2, 22), _at(3, 2)), 31.25)
    assert overnight.hours_worked == 4
    assert overnight.night_surcharge == 100


def test_quoted_evening_that_finished_early_pays_no_night_fee() -> None:
    pay = reconcile(ShiftRecord(1, _at(2, 15), _at(2, 18)), 31.25)
    assert pay.night_surcharge == 0


def test_evening_shift_boundary() -> None:
    assert not is_evening_shift(_at(2, 12), _at(2, 19))
    assert is_evening_shift(_at(2, 12), _at(2, 19, 0, 1))
    assert is_evening_shift(_at(2, 6, 59), _at(2, 12))
    assert not is_evening_shift(_at(2, 7), _at(2, 12))


@pytest.mark.parametrize(
    "record",
    [
        ShiftRecord(1),
        ShiftRecord(1, clock_in=_at(2, 9)),
        ShiftRecord(1, clock_in=_at(2, 13), clock_out=_at(2, 9)),
        ShiftRecord(1, clock_in=_at(2, 9), clock_out=datetime(2025, 7, 2, 13, tzinfo=UTC)),
    ],
)
def test_unusable_records_raise(record: ShiftRecord) -> None:
    with pytest.raises(InvalidInput):
        reconcile(record, 31.25)


def test_negative_rate_raises() -> None:
    with pytest.raises(InvalidInput):
        reconcile(ShiftRecord(1, _at(2, 9), _at(2, 10)), -1)


def test_record_state() -> None:
    assert not ShiftRecord(1).is_active
    assert ShiftRecord(1, clock_in=_at(2, 9)).is_active
    assert ShiftRecord(1, _at(2, 9), _at(2, 10)).is_terminal


def test_estimate_pay_uses_quoted_slots() -> None:
    day = BookingWindow.from_strings("9:00", "17:00", "2025-07-02", "2025-07-03")
    pay = estimate_pay(day, 31.25)
    assert pay.hours_worked == 16
    assert pay.base_pay == 500
    assert pay.night_surcharge == 0

    night = BookingWindow.from_strings("18:00", "1:00", "2025-07-02", "2025-07-03")
    pay = estimate_pay(night, 31.25)
    assert pay.hours_worked == 14
    # flat per shift, not per day
    assert pay.night_surcharge == 100


def test_pay_by_caregiver_skips_unfinished_records() -> None:
    records = [
        ("amina", ShiftRecord(1, _at(2, 9), _at(2, 13))),
        ("amina", ShiftRecord(2, _at(3, 18), _at(3, 22))),
        ("sara", ShiftRecord(3, clock_in=_at(3, 9))),
        ("sara", ShiftRecord(4)),
    ]
    totals = pay_by_caregiver(records, 31.25)
    assert set(totals) == {"amina"}
    assert totals["amina"].hours_worked == 8
    assert totals["amina"].base_pay == 250
    assert totals["amina"].night_surcharge == 100
    assert totals["amina"].total == 350


def test_sum_pay_of_nothing() -> None:
    assert sum_pay([]) == ZERO_PAY


def test_formatting() -> None:
    assert format_hours_worked(_at(2, 9), _at(2, 13, 30)) == "4h 30m"
    assert format_hours_worked(_at(2, 9), _at(2, 9, 59, 50)) == "1h 0m"
    assert format_elapsed(3725) == "01:02:05"
    assert format_elapsed(-4) == "00:00:00"
