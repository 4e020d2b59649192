"""CSV / JSON export and JSON import."""

from __future__ import annotations

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from worktime.errors import InvalidJson, MissingRecords, MissingSettings
from worktime.models import Settings, WorkDayRecord, coerce_int
from worktime.rules import RuleInput, summarize_work
from worktime.session import SessionMachine
from worktime.timeconv import format_time_hm, is_representable_ms, is_valid_day_key

logger = logging.getLogger(__name__)

CSV_HEADER = ["date", "checkIn", "checkOut", "grossMinutes", "deductionMinutes", "netMinutes"]


# ── Export ────────────────────────────────────────────────────


def records_to_csv(records: list[WorkDayRecord], rules: RuleInput) -> str:
    """One row per day; open days leave the minute columns empty."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in records:
        check_in = format_time_hm(r.check_in_ms) if r.check_in_ms else ""
        check_out = format_time_hm(r.check_out_ms) if r.check_out_ms else ""
        minutes: list[Any] = ["", "", ""]
        if r.check_in_ms and r.check_out_ms:
            summary = summarize_work(r.check_in_ms, r.check_out_ms, rules)
            minutes = [summary.gross_minutes, summary.deduction_minutes, summary.net_minutes]
        writer.writerow([r.date, check_in, check_out, *minutes])
    return buf.getvalue()


def _iso_utc(ms: int) -> str:
    stamp = datetime.fromtimestamp(ms / 1000, timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def build_export_json(records: list[WorkDayRecord], settings: Settings, now_ms: int) -> dict[str, Any]:
    return {
        "schemaVersion": settings.schema_version,
        "exportedAt": _iso_utc(now_ms),
        "settings": settings.to_dict(),
        "records": [r.to_dict() for r in records],
    }


def export_json_text(machine: SessionMachine) -> str:
    payload = build_export_json(machine.records(), machine.settings, machine.now())
    return json.dumps(payload, indent=2, ensure_ascii=False)


def export_csv_text(machine: SessionMachine) -> str:
    return records_to_csv(machine.records(), machine.rules)


# ── Import ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ImportResult:
    imported: int
    skipped: int
    open_record_date: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "openRecordDate": self.open_record_date,
        }


def parse_import_json(text: str | bytes) -> dict[str, Any]:
    """Parse and validate an export document without touching any store."""
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InvalidJson() from exc
    if not isinstance(payload, dict):
        raise InvalidJson()
    if not isinstance(payload.get("records"), list):
        raise MissingRecords()
    if not isinstance(payload.get("settings"), dict):
        raise MissingSettings()
    return payload


def coerce_import_record(raw: Any, now_ms: int) -> WorkDayRecord | None:
    """Build a record from imported data, or None when it cannot be used.

    Entries without a valid day key or check-in instant are dropped, as are
    entries whose check-out precedes the check-in and entries with instants
    that have no date in the fixed zone. Missing or non-numeric
    created/updated stamps fall back to ``now_ms``.
    """
    if not isinstance(raw, dict):
        return None
    day_key = str(raw.get("date") or "")
    if not is_valid_day_key(day_key):
        return None
    check_in = coerce_int(raw.get("checkInMs"))
    if not check_in:
        return None
    check_out = None if raw.get("checkOutMs") is None else coerce_int(raw.get("checkOutMs"))
    if not is_representable_ms(check_in) or (check_out is not None and not is_representable_ms(check_out)):
        return None
    if check_out is not None and check_out < check_in:
        return None
    return WorkDayRecord(
        date=day_key,
        check_in_ms=check_in,
        check_out_ms=check_out,
        created_at_ms=coerce_int(raw.get("createdAtMs")) or now_ms,
        updated_at_ms=coerce_int(raw.get("updatedAtMs")) or now_ms,
    )


def import_json(machine: SessionMachine, text: str | bytes) -> ImportResult:
    """Merge an export document into the store.

    Imported days overwrite stored days with the same key; other stored days
    are kept. Everything is validated before the first write.
    """
    payload = parse_import_json(text)
    now = machine.now()
    records = []
    skipped = 0
    for raw in payload["records"]:
        record = coerce_import_record(raw, now)
        if record is None:
            skipped += 1
        else:
            records.append(record)

    for record in records:
        machine.store.put_record(record)
    machine.replace_settings(payload["settings"])
    open_date = machine.recompute_open_pointer()
    logger.info("Imported %d days (%d skipped)", len(records), skipped)
    return ImportResult(imported=len(records), skipped=skipped, open_record_date=open_date)
