"""Check-in / check-out session handling for Worktime.

A day moves NoRecord -> Open -> Closed. At most one record in the store is
open at a time and ``Settings.open_record_date`` points at it. The pointer
is only a hint: every read goes through ``open_record``, which verifies the
record still exists and is open and clears the pointer when it is not.

Every operation validates first and writes last, so a failed call leaves
the store as it was. Check-in and check-out return an ``UndoAction`` that
the caller may later pass to ``undo`` within the configured window.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from worktime.config import AppConfig
from worktime.errors import (
    AlreadyCheckedIn,
    AlreadyOpen,
    CheckoutBeforeCheckin,
    FutureCheckin,
    FutureCheckout,
    FutureTime,
    InvalidInput,
    NoOpenDay,
    RecordNotFound,
    UndoExpired,
    UndoStale,
)
from worktime.models import (
    DEFAULT_RULES,
    SCHEMA_VERSION,
    UNDO_CHECKIN,
    UNDO_CHECKOUT,
    DayStatus,
    DeductionRule,
    Settings,
    UndoAction,
    WorkDayRecord,
    WorkSummary,
)
from worktime.rules import (
    normalize_rules,
    summarize_local_span,
    summarize_work,
    target_progress,
    validate_rule_order,
)
from worktime.store import WorkdayStore
from worktime.timeconv import (
    add_days,
    day_key_from_epoch,
    is_valid_day_key,
    now_ms,
    parse_day_key,
    resolve_local_time,
)

logger = logging.getLogger(__name__)


def load_settings(store: WorkdayStore) -> Settings:
    """Load the settings singleton, defaulting, backfilling and migrating it.

    The result is written back only when it differs from the stored copy.
    """
    raw = store.get_settings()
    settings = Settings.from_dict(raw)
    settings.rules = normalize_rules(settings.rules)
    if settings.schema_version < SCHEMA_VERSION:
        logger.info("Migrating settings from schema %s to %s", settings.schema_version, SCHEMA_VERSION)
        settings.schema_version = SCHEMA_VERSION
    if settings.to_dict() != raw:
        store.put_settings(settings.to_dict())
    return settings


class SessionMachine:
    def __init__(
        self,
        store: WorkdayStore,
        clock: Callable[[], int] = now_ms,
        config: AppConfig | None = None,
    ):
        self.store = store
        self.config = config or AppConfig()
        self._clock = clock
        self.settings = load_settings(store)
        self.reconcile()

    # ── Basics ────────────────────────────────────────────────

    def now(self) -> int:
        return self._clock()

    def today(self) -> str:
        return day_key_from_epoch(self.now())

    @property
    def rules(self) -> list[DeductionRule]:
        return self.settings.rules

    def _save_settings(self) -> None:
        self.store.put_settings(self.settings.to_dict())

    def _set_pointer(self, day_key: str | None) -> None:
        self.settings.open_record_date = day_key
        self._save_settings()

    # ── Open-record pointer ───────────────────────────────────

    def open_record(self) -> WorkDayRecord | None:
        """The validated open record, clearing a stale pointer on the way."""
        key = self.settings.open_record_date
        if not key:
            return None
        record = self.store.get_record(key) if is_valid_day_key(key) else None
        if record is not None and record.is_open:
            return record
        logger.warning("Clearing stale open-record pointer %s", key)
        self._set_pointer(None)
        return None

    def reconcile(self) -> str | None:
        """Self-heal the pointer; returns the day key of the open record, if any."""
        record = self.open_record()
        return record.date if record else None

    def recompute_open_pointer(self) -> str | None:
        """Point at an open record found by scanning the store.

        Used after bulk imports. When several records are open the most recent
        day key is chosen.
        """
        open_records = [r for r in self.store.list_records() if r.is_open and r.check_in_ms]
        if len(open_records) > 1:
            logger.warning(
                "%d open records found; treating %s as the active day",
                len(open_records),
                open_records[0].date,
            )
        self._set_pointer(open_records[0].date if open_records else None)
        return self.settings.open_record_date

    def active_record(self) -> WorkDayRecord | None:
        """The open record if there is one, else today's record, else None."""
        record = self.open_record()
        if record is not None:
            return record
        return self.store.get_record(self.today())

    # ── Operations ────────────────────────────────────────────

    def check_in(self, hm: str | None = None) -> UndoAction:
        """Start today's work day at ``hm`` (HH:MM) or now when ``hm`` is None."""
        if self.open_record() is not None:
            raise AlreadyOpen()
        now = self.now()
        day_key = day_key_from_epoch(now)
        if self.store.get_record(day_key) is not None:
            raise AlreadyCheckedIn()

        if hm is None:
            check_in_ms = now
        else:
            try:
                check_in_ms = resolve_local_time(day_key, hm, upper_bound_ms=now)
            except FutureTime as exc:
                raise FutureCheckin() from exc
        if check_in_ms > now:
            raise FutureCheckin()

        record = WorkDayRecord(
            date=day_key,
            check_in_ms=check_in_ms,
            check_out_ms=None,
            created_at_ms=now,
            updated_at_ms=now,
        )
        self.store.put_record(record)
        self._set_pointer(day_key)
        logger.info("Checked in on %s", day_key)
        return self._undo_for(UNDO_CHECKIN, record, now)

    def check_out(self, hm: str | None = None) -> UndoAction:
        """Close the open day at ``hm`` (HH:MM) or now when ``hm`` is None.

        A manual time earlier than the check-in is read as the next calendar
        day (an overnight shift).
        """
        record = self.active_record()
        if record is None or not record.is_open:
            raise NoOpenDay()
        now = self.now()

        if hm is None:
            end_ms = now
        else:
            end_ms = self._resolve_end(record.date, hm, record.check_in_ms)
        if end_ms < record.check_in_ms:
            raise CheckoutBeforeCheckin()
        if not self.settings.allow_future_checkout and end_ms > now:
            raise FutureCheckout()

        closed = replace(record, check_out_ms=end_ms, updated_at_ms=now)
        self.store.put_record(closed)
        self._set_pointer(None)
        if day_key_from_epoch(end_ms) != closed.date:
            logger.info("Checked out of %s on the following day", closed.date)
        else:
            logger.info("Checked out of %s", closed.date)
        return self._undo_for(UNDO_CHECKOUT, closed, now)

    def edit_record(self, day_key: str, check_in_hm: str, check_out_hm: str | None = None) -> WorkDayRecord:
        """Replace the times of an existing day. An empty check-out reopens it."""
        parse_day_key(day_key)
        record = self.store.get_record(day_key)
        if record is None:
            raise RecordNotFound()

        check_in_ms = resolve_local_time(day_key, check_in_hm)
        check_out_ms = None
        if check_out_hm:
            check_out_ms = self._resolve_end(day_key, check_out_hm, check_in_ms)
            if check_out_ms < check_in_ms:
                raise CheckoutBeforeCheckin()
        else:
            current = self.open_record()
            if current is not None and current.date != day_key:
                raise AlreadyOpen()

        updated = replace(
            record,
            check_in_ms=check_in_ms,
            check_out_ms=check_out_ms,
            updated_at_ms=self.now(),
        )
        self.store.put_record(updated)
        if updated.is_open:
            self._set_pointer(day_key)
        elif self.settings.open_record_date == day_key:
            self._set_pointer(None)
        logger.info("Edited %s", day_key)
        return updated

    def delete_record(self, day_key: str) -> bool:
        parse_day_key(day_key)
        removed = self.store.delete_record(day_key)
        if self.settings.open_record_date == day_key:
            self._set_pointer(None)
        if removed:
            logger.info("Deleted %s", day_key)
        return removed

    def undo(self, action: UndoAction) -> WorkDayRecord | None:
        """Apply the compensating write for a check-in or check-out.

        Returns the reopened record for a check-out, None for a check-in.
        """
        if self.now() > action.expires_at_ms:
            raise UndoExpired()
        record = self.store.get_record(action.date) if is_valid_day_key(action.date) else None

        if action.kind == UNDO_CHECKIN:
            if record is None or not record.is_open or record.check_in_ms != action.check_in_ms:
                raise UndoStale()
            self.store.delete_record(action.date)
            if self.settings.open_record_date == action.date:
                self._set_pointer(None)
            logger.info("Undid check-in on %s", action.date)
            return None

        if action.kind == UNDO_CHECKOUT:
            if (
                record is None
                or record.check_in_ms != action.check_in_ms
                or record.check_out_ms != action.check_out_ms
            ):
                raise UndoStale()
            current = self.open_record()
            if current is not None and current.date != action.date:
                raise UndoStale()
            reopened = replace(record, check_out_ms=None, updated_at_ms=self.now())
            self.store.put_record(reopened)
            self._set_pointer(action.date)
            logger.info("Undid check-out of %s", action.date)
            return reopened

        raise InvalidInput(f"Unknown undo action: {action.kind!r}")

    def _resolve_end(self, day_key: str, hm: str, check_in_ms: int) -> int:
        end_ms = resolve_local_time(day_key, hm)
        if end_ms < check_in_ms:
            end_ms = resolve_local_time(add_days(day_key, 1), hm)
        return end_ms

    def _undo_for(self, kind: str, record: WorkDayRecord, now: int) -> UndoAction:
        return UndoAction(
            kind=kind,
            date=record.date,
            check_in_ms=record.check_in_ms,
            check_out_ms=record.check_out_ms,
            issued_at_ms=now,
            expires_at_ms=now + self.config.undo_window_ms,
        )

    # ── Reading ───────────────────────────────────────────────

    def records(self) -> list[WorkDayRecord]:
        return self.store.list_records()

    def summarize(self, record: WorkDayRecord) -> WorkSummary | None:
        """Summary of a closed record; None while it is still open."""
        if record.check_out_ms is None:
            return None
        return summarize_work(record.check_in_ms, record.check_out_ms, self.rules)

    def status(self, targets: Iterable[int] | None = None) -> DayStatus:
        """Progress of the active day, counting an open day up to now."""
        record = self.active_record()
        if record is None:
            return DayStatus(day_key=self.today())
        end_ms = record.check_out_ms if record.check_out_ms is not None else self.now()
        end_ms = max(end_ms, record.check_in_ms)
        goals = list(self.config.targets if targets is None else targets)
        return DayStatus(
            day_key=record.date,
            record=record,
            summary=summarize_work(record.check_in_ms, end_ms, self.rules),
            targets=target_progress(record.check_in_ms, end_ms, goals, self.rules),
        )

    def calculate(self, start_day: str, start_hm: str, end_day: str, end_hm: str) -> WorkSummary:
        return summarize_local_span(start_day, start_hm, end_day, end_hm, self.rules)

    # ── Settings ──────────────────────────────────────────────

    def save_rules(self, rules: Iterable[DeductionRule | dict[str, Any]]) -> list[DeductionRule]:
        self.settings.rules = validate_rule_order(rules)
        self._save_settings()
        return self.settings.rules

    def reset_rules(self) -> list[DeductionRule]:
        self.settings.rules = list(DEFAULT_RULES)
        self._save_settings()
        return self.settings.rules

    def set_allow_future_checkout(self, allowed: bool) -> None:
        self.settings.allow_future_checkout = bool(allowed)
        self._save_settings()

    def replace_settings(self, raw: dict[str, Any]) -> Settings:
        """Adopt an imported settings object, backfilled and normalized.

        The open pointer is not taken from ``raw``; call
        ``recompute_open_pointer`` once the records are in place.
        """
        settings = Settings.from_dict(raw)
        settings.rules = normalize_rules(settings.rules)
        settings.schema_version = max(settings.schema_version, SCHEMA_VERSION)
        settings.open_record_date = self.settings.open_record_date
        self.settings = settings
        self._save_settings()
        return settings
