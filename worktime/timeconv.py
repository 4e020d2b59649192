"""Fixed-timezone conversions between instants and day/time-of-day pairs.

Instants are integer epoch milliseconds. Day keys are ``YYYY-MM-DD`` strings
and times of day are 24-hour ``HH:MM`` strings, both interpreted in the
single fixed zone ``TZ`` no matter what the host's local zone is.
"""

from __future__ import annotations

import logging
import math
import re
import threading
import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from worktime.errors import FutureTime, InvalidInput, InvalidTime

logger = logging.getLogger(__name__)

TZ_NAME = "Europe/Budapest"
TZ = ZoneInfo(TZ_NAME)

MS_PER_MINUTE = 60_000
RESOLVE_MAX_ITERATIONS = 3

_HM_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_DAY_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def _zoned(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, TZ)


def day_key_from_epoch(ms: int) -> str:
    """Calendar day (YYYY-MM-DD) of an instant in the fixed zone."""
    return _zoned(ms).date().isoformat()


def today_key(now: int | None = None) -> str:
    return day_key_from_epoch(now_ms() if now is None else now)


def format_time_hm(ms: int) -> str:
    """Wall-clock HH:MM of an instant in the fixed zone."""
    return _zoned(ms).strftime("%H:%M")


def format_minutes_hhmm(total_minutes: int) -> str:
    hours, minutes = divmod(int(total_minutes), 60)
    return f"{hours:02d}:{minutes:02d}"


def is_valid_time_of_day(s: object) -> bool:
    return isinstance(s, str) and _HM_RE.match(s) is not None


def is_representable_ms(ms: int) -> bool:
    """True when the instant has a calendar date and time in the fixed zone."""
    try:
        _zoned(ms)
    except (OverflowError, OSError, ValueError):
        return False
    return True


def is_valid_day_key(s: object) -> bool:
    if not isinstance(s, str) or not _DAY_KEY_RE.match(s):
        return False
    try:
        date.fromisoformat(s)
    except ValueError:
        return False
    return True


def parse_day_key(day_key: str) -> date:
    if not is_valid_day_key(day_key):
        raise InvalidInput(f"Invalid day key: {day_key!r}")
    return date.fromisoformat(day_key)


def _offset_ms_at(ms: int) -> int:
    """UTC offset of the fixed zone at an instant, in milliseconds."""
    offset = _zoned(ms).utcoffset() or timedelta(0)
    return int(offset.total_seconds() * 1000)


def resolve_local_time(day_key: str, hm: str, upper_bound_ms: int | None = None) -> int:
    """Convert a day key and ``HH:MM`` in the fixed zone to an instant.

    The day and time are first read as if they were UTC. That naive guess is
    then corrected by the zone's offset at the guess, repeatedly, until two
    guesses agree within 1 ms or RESOLVE_MAX_ITERATIONS is reached. Wall
    times inside a spring-forward gap never stabilize and end on one of the
    two candidate instants around the gap.
    """
    if not is_valid_time_of_day(hm):
        raise InvalidTime(f"Invalid time: {hm!r}. Use the 24-hour HH:MM format.")
    day = parse_day_key(day_key)
    hours, minutes = (int(p) for p in hm.split(":"))

    naive = datetime(day.year, day.month, day.day, hours, minutes, tzinfo=timezone.utc)
    base = int(naive.timestamp()) * 1000

    guess = base
    try:
        for _ in range(RESOLVE_MAX_ITERATIONS):
            candidate = base - _offset_ms_at(guess)
            if abs(candidate - guess) < 1:
                guess = candidate
                break
            guess = candidate
        _zoned(guess)
    except (OverflowError, OSError, ValueError) as exc:
        raise InvalidInput(f"Date out of range: {day_key}") from exc

    if upper_bound_ms is not None and guess > upper_bound_ms:
        raise FutureTime()
    return guess


def add_days(day_key: str, days: int) -> str:
    """Shift a day key by whole calendar days.

    The intermediate instant sits at noon UTC of the day so that the
    fixed-zone calendar date never slips across a DST change.
    """
    day = parse_day_key(day_key)
    anchor = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)
    try:
        return (anchor + timedelta(days=days)).astimezone(TZ).date().isoformat()
    except (OverflowError, ValueError) as exc:
        raise InvalidInput(f"Date out of range: {day_key} + {days} days") from exc


def minutes_between(start_ms: int, end_ms: int) -> int:
    """Whole minutes from start to end, floored (negative when end < start)."""
    return math.floor((end_ms - start_ms) / MS_PER_MINUTE)


def host_timezone_matches(now: int | None = None) -> bool:
    """True when the host's local UTC offset equals the fixed zone's right now."""
    ms = now_ms() if now is None else now
    local = datetime.fromtimestamp(ms / 1000).astimezone().utcoffset()
    return local == _zoned(ms).utcoffset()


# ── Minute ticker ─────────────────────────────────────────────


class MinuteTicker:
    """Calls a function now and then on every wall-clock minute boundary.

    Runs on daemon timer threads and is best effort: if the host sleeps the
    next tick simply comes late. ``cancel`` is safe to call more than once.
    """

    SLACK_MS = 10

    def __init__(self, callback: Callable[[], None], clock: Callable[[], int] = now_ms):
        self._callback = callback
        self._clock = clock
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def start(self) -> MinuteTicker:
        self._tick()
        self._schedule()
        return self

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _delay_seconds(self) -> float:
        ms_to_next = MS_PER_MINUTE - (self._clock() % MS_PER_MINUTE)
        return (ms_to_next + self.SLACK_MS) / 1000

    def _schedule(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            timer = threading.Timer(self._delay_seconds(), self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _fire(self) -> None:
        if self._cancelled:
            return
        self._tick()
        self._schedule()

    def _tick(self) -> None:
        try:
            self._callback()
        except Exception:
            logger.exception("Minute tick callback failed")


def periodic_minute_signal(callback: Callable[[], None]) -> MinuteTicker:
    """Start a MinuteTicker for ``callback``; call ``cancel()`` on the result to stop."""
    return MinuteTicker(callback).start()
