"""Tests for worktime/transfer.py: CSV / JSON export and JSON import."""

import json

import pytest

from worktime.errors import InvalidJson, MissingRecords, MissingSettings
from worktime.models import DeductionRule, WorkDayRecord
from worktime.session import SessionMachine
from worktime.store import MemoryStore
from worktime.timeconv import resolve_local_time
from worktime.transfer import (
    CSV_HEADER,
    build_export_json,
    export_csv_text,
    export_json_text,
    import_json,
    parse_import_json,
    records_to_csv,
)

DAY = "2026-06-15"


def _closed_day(machine, clock):
    clock.set_local(DAY, "17:00")
    machine.check_in("08:00")
    machine.check_out("16:00")


def _export_doc(records, settings=None):
    return json.dumps({
        "schemaVersion": 1,
        "exportedAt": "2026-06-15T15:00:00.000Z",
        "settings": settings if settings is not None else {"rules": [{"thresholdMin": 360, "deductionMin": 30}]},
        "records": records,
    })


# ── Export ────────────────────────────────────────────────────


def test_csv_export(machine, clock):
    _closed_day(machine, clock)
    clock.set_local("2026-06-16", "10:00")
    machine.check_in("09:00")
    lines = export_csv_text(machine).split("\n")
    assert lines[0] == ",".join(CSV_HEADER)
    assert lines[1] == "2026-06-16,09:00,,,,"
    assert lines[2] == "2026-06-15,08:00,16:00,480,30,450"
    assert lines[3] == ""


def test_csv_export_quotes_special_characters():
    record = WorkDayRecord(date='a,"b"', check_in_ms=resolve_local_time(DAY, "08:00"))
    text = records_to_csv([record], [])
    assert text.splitlines()[1] == '"a,""b""",08:00,,,,'


def test_csv_export_empty():
    assert records_to_csv([], []) == "date,checkIn,checkOut,grossMinutes,deductionMinutes,netMinutes\n"


def test_json_export(machine, clock):
    _closed_day(machine, clock)
    doc = json.loads(export_json_text(machine))
    assert doc["schemaVersion"] == 1
    assert doc["exportedAt"] == "2026-06-15T15:00:00.000Z"
    assert doc["settings"]["timezone"] == "Europe/Budapest"
    assert doc["records"][0]["date"] == DAY
    assert doc["records"][0]["checkOutMs"] == resolve_local_time(DAY, "16:00")


def test_build_export_json_keys(machine):
    doc = build_export_json([], machine.settings, 0)
    assert set(doc) == {"schemaVersion", "exportedAt", "settings", "records"}
    assert doc["exportedAt"] == "1970-01-01T00:00:00.000Z"


# ── Import ────────────────────────────────────────────────────


@pytest.mark.parametrize("text", ["not json", "[]", "42", b"\x80abc"])
def test_parse_import_rejects_non_objects(text):
    with pytest.raises(InvalidJson):
        parse_import_json(text)


def test_parse_import_requires_records_list():
    with pytest.raises(MissingRecords):
        parse_import_json(json.dumps({"settings": {}}))
    with pytest.raises(MissingRecords):
        parse_import_json(json.dumps({"settings": {}, "records": {}}))


def test_parse_import_requires_settings():
    with pytest.raises(MissingSettings):
        parse_import_json(json.dumps({"records": []}))


def test_failed_import_leaves_store_untouched(machine, clock, store):
    _closed_day(machine, clock)
    before_records = store.list_records()
    before_settings = store.get_settings()
    with pytest.raises(MissingRecords):
        import_json(machine, json.dumps({"settings": {"rules": []}}))
    assert store.list_records() == before_records
    assert store.get_settings() == before_settings


def test_import_merges_and_skips_bad_records(machine, clock, store):
    _closed_day(machine, clock)
    check_in = resolve_local_time("2026-06-10", "08:00")
    text = _export_doc([
        {"date": "2026-06-10", "checkInMs": check_in, "checkOutMs": check_in + 3_600_000},
        {"date": "2026-06-11", "checkInMs": None},
        {"date": "June 12", "checkInMs": check_in},
        {"date": "2026-06-13", "checkInMs": check_in, "checkOutMs": check_in - 1},
        "garbage",
    ])
    result = import_json(machine, text)
    assert (result.imported, result.skipped) == (1, 4)
    assert [r.date for r in store.list_records()] == ["2026-06-15", "2026-06-10"]
    imported = store.get_record("2026-06-10")
    assert imported.created_at_ms == clock.ms
    assert machine.rules == [DeductionRule(360, 30)]


def test_import_overwrites_same_day_and_sets_open_pointer(machine, clock, store):
    _closed_day(machine, clock)
    check_in = resolve_local_time(DAY, "07:00")
    result = import_json(machine, _export_doc([{"date": DAY, "checkInMs": check_in, "checkOutMs": None}]))
    assert result.open_record_date == DAY
    assert store.get_record(DAY).check_in_ms == check_in
    assert store.get_record(DAY).is_open
    assert machine.settings.open_record_date == DAY
    machine.check_out("16:00")


def test_import_ignores_pointer_from_file(machine):
    settings = {"rules": [], "openRecordDate": "2026-01-01"}
    result = import_json(machine, _export_doc([], settings))
    assert result.open_record_date is None
    assert machine.settings.open_record_date is None


def test_export_then_import_into_empty_store(machine, clock):
    _closed_day(machine, clock)
    machine.save_rules([{"thresholdMin": 300, "deductionMin": 15}])
    fresh = SessionMachine(MemoryStore(), clock=clock)
    result = import_json(fresh, export_json_text(machine))
    assert result.imported == 1
    assert fresh.records() == machine.records()
    assert fresh.rules == machine.rules
    assert export_csv_text(fresh) == export_csv_text(machine)


def test_import_skips_instants_without_a_calendar_date(machine, clock):
    _closed_day(machine, clock)
    text = _export_doc([
        {"date": "2026-06-10", "checkInMs": 1e20, "checkOutMs": 2e20},
        {"date": "2026-06-11", "checkInMs": resolve_local_time("2026-06-11", "08:00"), "checkOutMs": 1e20},
    ])
    result = import_json(machine, text)
    assert (result.imported, result.skipped) == (0, 2)
    assert [r.date for r in machine.records()] == [DAY]
    assert export_csv_text(machine).splitlines()[1] == "2026-06-15,08:00,16:00,480,30,450"
