from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from municipal_ledger.errors import InvalidPeriod
from municipal_ledger.services.periods import Period
from municipal_ledger.utils import format_cents, to_cents

UTC = ZoneInfo("UTC")

def test_period_from_token_covers_whole_month():
    period = Period.from_token("2025-12", UTC)

    assert period.start == datetime(2025, 12, 1, tzinfo=UTC)
    assert period.end == datetime(2025, 12, 31, 23, 59, 59, 999999, tzinfo=UTC)
    assert period.token == "2025-12"
    assert not period.is_degenerate

def test_february_leap_year_ends_on_29th():
    period = Period.from_token("2024-02", UTC)
    assert period.end.day == 29

@pytest.mark.parametrize("token", [
    "2025-13", "2025-00", "2025-1", "25-12", "2025/12", "abcd-ef", "",
    "0000-01", "0001-01", "9999-12", "2025-12\n", "２０２５-12",
])
def test_malformed_tokens_are_rejected(token):
    with pytest.raises(InvalidPeriod):
        Period.from_token(token, UTC)

def test_inverted_range_is_rejected():
    start = datetime(2025, 12, 10, tzinfo=timezone.utc)
    with pytest.raises(InvalidPeriod):
        Period(start=start, end=start - timedelta(days=1))

def test_range_spanning_two_months_is_rejected():
    with pytest.raises(InvalidPeriod):
        Period(
            start=datetime(2025, 11, 30, tzinfo=timezone.utc),
            end=datetime(2025, 12, 2, tzinfo=timezone.utc),
        )

def test_naive_bounds_are_rejected():
    with pytest.raises(InvalidPeriod):
        Period(start=datetime(2025, 12, 1), end=datetime(2025, 12, 2))

def test_consecutive_periods_leave_no_gap():
    december = Period.from_token("2025-12", UTC)
    january = december.next()

    assert january.token == "2026-01"
    assert january.start - december.end == timedelta(microseconds=1)
    assert january.previous() == december

def test_degenerate_period_contains_nothing():
    start = datetime(2025, 12, 1, tzinfo=timezone.utc)
    period = Period(start=start, end=start)

    assert period.is_degenerate
    assert not period.contains(start)

def test_period_boundaries_are_inclusive():
    period = Period.from_token("2025-12", UTC)

    assert period.contains(period.start)
    assert period.contains(period.end)
    assert not period.contains(period.end + timedelta(microseconds=1))

def test_billing_timezone_shifts_the_window():
    period = Period.from_token("2025-12", ZoneInfo("Africa/Windhoek"))

    assert period.start.astimezone(timezone.utc) == datetime(2025, 11, 30, 22, 0, tzinfo=timezone.utc)

def test_amounts_round_trip_through_cents():
    assert to_cents("1245.00") == 124500
    assert to_cents("1785.5") == 178550
    assert format_cents(303050) == "3030.50"
    assert format_cents(-1250) == "-12.50"

def test_float_amounts_are_refused():
    with pytest.raises(TypeError):
        to_cents(0.1)

def test_cents_do_not_drift():
    assert sum(to_cents("0.10") for _ in range(10)) == 100

def test_earliest_and_latest_supported_months_parse():
    earliest = Period.from_token("0002-01", UTC)
    latest = Period.from_token("9998-12", UTC)

    assert (earliest.start - timedelta(microseconds=1)).year == 1
    assert (latest.end + timedelta(microseconds=1)).year == 9999
