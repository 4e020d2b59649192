"""Tests for worktime/timeconv.py: fixed-zone conversions and the minute ticker."""

from datetime import datetime, timezone

import pytest

from worktime.errors import FutureTime, InvalidInput, InvalidTime
from worktime.timeconv import (
    MinuteTicker,
    add_days,
    day_key_from_epoch,
    format_minutes_hhmm,
    format_time_hm,
    host_timezone_matches,
    is_representable_ms,
    is_valid_day_key,
    is_valid_time_of_day,
    minutes_between,
    periodic_minute_signal,
    resolve_local_time,
    today_key,
)


def utc_ms(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp()) * 1000


def test_resolve_summer_time():
    assert resolve_local_time("2026-06-15", "08:00") == utc_ms(2026, 6, 15, 6, 0)


def test_resolve_winter_time():
    assert resolve_local_time("2026-01-10", "08:00") == utc_ms(2026, 1, 10, 7, 0)


def test_resolve_midnight_belongs_to_the_day():
    ms = resolve_local_time("2026-06-15", "00:00")
    assert ms == utc_ms(2026, 6, 14, 22, 0)
    assert day_key_from_epoch(ms) == "2026-06-15"


@pytest.mark.parametrize("day_key", ["2026-01-10", "2026-03-29", "2026-06-15", "2026-10-25", "2026-12-31"])
@pytest.mark.parametrize("hm", ["00:00", "07:45", "12:34", "23:59"])
def test_resolve_then_format_gives_back_the_input(day_key, hm):
    ms = resolve_local_time(day_key, hm)
    assert day_key_from_epoch(ms) == day_key
    assert format_time_hm(ms) == hm


def test_resolve_spring_forward_gap_lands_next_to_the_gap():
    # 02:30 does not exist on 2026-03-29 in Budapest
    ms = resolve_local_time("2026-03-29", "02:30")
    assert utc_ms(2026, 3, 29, 0, 30) <= ms <= utc_ms(2026, 3, 29, 1, 30)
    assert ms == resolve_local_time("2026-03-29", "02:30")


def test_resolve_fall_back_overlap_is_deterministic():
    ms = resolve_local_time("2026-10-25", "02:30")
    assert ms == utc_ms(2026, 10, 25, 1, 30)
    assert format_time_hm(ms) == "02:30"


@pytest.mark.parametrize("hm", ["8:00", "24:00", "12:60", "ab:cd", "", "08:00:00", " 08:00"])
def test_resolve_rejects_bad_times(hm):
    with pytest.raises(InvalidTime, match="HH:MM"):
        resolve_local_time("2026-06-15", hm)


@pytest.mark.parametrize("day_key", ["2026-13-01", "2026-02-30", "15.06.2026", ""])
def test_resolve_rejects_bad_day_keys(day_key):
    with pytest.raises(InvalidInput):
        resolve_local_time(day_key, "08:00")


def test_resolve_upper_bound():
    bound = utc_ms(2026, 6, 15, 6, 0)
    assert resolve_local_time("2026-06-15", "08:00", upper_bound_ms=bound) == bound
    with pytest.raises(FutureTime):
        resolve_local_time("2026-06-15", "08:01", upper_bound_ms=bound)


def test_day_key_uses_fixed_zone_not_utc():
    # 22:30 UTC is already the next day in Budapest
    assert day_key_from_epoch(utc_ms(2026, 6, 15, 22, 30)) == "2026-06-16"
    assert today_key(utc_ms(2026, 6, 15, 21, 59)) == "2026-06-15"


@pytest.mark.parametrize(
    "day_key,days,expected",
    [
        ("2026-03-28", 1, "2026-03-29"),
        ("2026-03-29", 1, "2026-03-30"),
        ("2026-10-25", -1, "2026-10-24"),
        ("2026-10-24", 2, "2026-10-26"),
        ("2026-12-31", 1, "2027-01-01"),
        ("2028-03-01", -1, "2028-02-29"),
        ("2026-06-15", 0, "2026-06-15"),
    ],
)
def test_add_days(day_key, days, expected):
    assert add_days(day_key, days) == expected


def test_minutes_between_floors():
    assert minutes_between(0, 59_999) == 0
    assert minutes_between(0, 60_000) == 1
    assert minutes_between(0, 8 * 3_600_000) == 480
    assert minutes_between(1, 0) == -1
    assert minutes_between(60_000, 0) == -1


def test_validators():
    assert is_valid_time_of_day("00:00")
    assert is_valid_time_of_day("23:59")
    assert not is_valid_time_of_day("24:00")
    assert not is_valid_time_of_day(800)
    assert is_valid_day_key("2028-02-29")
    assert not is_valid_day_key("2026-02-29")
    assert not is_valid_day_key(None)


def test_format_minutes_hhmm():
    assert format_minutes_hhmm(0) == "00:00"
    assert format_minutes_hhmm(485) == "08:05"
    assert format_minutes_hhmm(1500) == "25:00"


def test_host_timezone_matches_returns_bool():
    assert isinstance(host_timezone_matches(utc_ms(2026, 6, 15, 12, 0)), bool)


# ── Minute ticker ─────────────────────────────────────────────


def test_ticker_fires_immediately_and_cancels():
    calls = []
    ticker = periodic_minute_signal(lambda: calls.append(1))
    try:
        assert calls == [1]
        assert ticker.active
    finally:
        ticker.cancel()
    assert not ticker.active
    ticker.cancel()


def test_ticker_waits_for_next_minute_boundary():
    ticker = MinuteTicker(lambda: None, clock=lambda: 125_000)
    assert ticker._delay_seconds() == pytest.approx(55.01)


def test_ticker_survives_failing_callback(caplog):
    def boom():
        raise RuntimeError("tick failed")

    ticker = MinuteTicker(boom, clock=lambda: 0)
    try:
        ticker.start()
    finally:
        ticker.cancel()
    assert "Minute tick callback failed" in caplog.text


@pytest.mark.parametrize("day_key,hm", [("9999-12-31", "23:00"), ("0001-01-01", "00:00")])
def test_resolve_at_the_ends_of_the_calendar(day_key, hm):
    with pytest.raises(InvalidInput, match="out of range"):
        resolve_local_time(day_key, hm)


def test_add_days_past_the_end_of_the_calendar():
    with pytest.raises(InvalidInput, match="out of range"):
        add_days("9999-12-31", 1)


def test_is_representable_ms():
    assert is_representable_ms(utc_ms(2026, 6, 15, 12, 0))
    assert not is_representable_ms(10**20)
    assert not is_representable_ms(-(10**20))
