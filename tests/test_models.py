"""Tests for worktime/models.py: dataclass serialization."""

import pytest

from worktime.errors import InvalidInput
from worktime.models import (
    DEFAULT_RULES,
    DayStatus,
    DeductionRule,
    Settings,
    UndoAction,
    WorkDayRecord,
    WorkSummary,
    coerce_int,
    parse_rule,
)


def test_coerce_int():
    assert coerce_int(5) == 5
    assert coerce_int(5.9) == 5
    assert coerce_int("12") == 12
    assert coerce_int(-0.5) == -1
    assert coerce_int(True) is None
    assert coerce_int(None) is None
    assert coerce_int("abc") is None
    assert coerce_int(float("nan")) is None


def test_deduction_rule_from_dict():
    rule = DeductionRule.from_dict({"thresholdMin": 360, "deductionMin": 30})
    assert rule == DeductionRule(360, 30)
    assert rule.to_dict() == {"thresholdMin": 360, "deductionMin": 30}
    with pytest.raises(InvalidInput):
        DeductionRule.from_dict({"thresholdMin": 360})


def test_parse_rule_clamps_and_accepts_snake_case():
    assert parse_rule({"threshold_min": -3, "deduction_min": 4.7}) == DeductionRule(0, 4)
    assert parse_rule(DeductionRule(-1, -1)) == DeductionRule(0, 0)
    assert parse_rule("360:30") is None


def test_work_day_record_round_trip():
    record = WorkDayRecord(date="2026-06-15", check_in_ms=1000, check_out_ms=None, created_at_ms=5, updated_at_ms=6)
    data = record.to_dict()
    assert data["checkInMs"] == 1000
    assert data["checkOutMs"] is None
    assert WorkDayRecord.from_dict(data) == record
    assert record.is_open


def test_settings_defaults():
    settings = Settings.from_dict(None)
    assert settings.rules == list(DEFAULT_RULES)
    assert settings.timezone == "Europe/Budapest"
    assert settings.open_record_date is None
    assert settings.allow_future_checkout is False


def test_settings_from_partial_dict():
    settings = Settings.from_dict({
        "timezone": "UTC",
        "rules": [{"thresholdMin": 300, "deductionMin": 10}, {"thresholdMin": "?"}],
        "openRecordDate": "2026-06-15",
    })
    assert settings.schema_version == 0
    assert settings.timezone == "Europe/Budapest"
    assert settings.rules == [DeductionRule(300, 10)]
    assert settings.open_record_date == "2026-06-15"
    assert settings.to_dict()["openRecordDate"] == "2026-06-15"


def test_undo_action_round_trip():
    action = UndoAction("checkout", "2026-06-15", 1, 2, 3, 4)
    assert action.to_dict()["expiresAtMs"] == 4
    assert UndoAction.from_dict(action.to_dict()) == action


def test_day_status_to_dict():
    record = WorkDayRecord(date="2026-06-15", check_in_ms=1)
    status = DayStatus(day_key="2026-06-15", record=record, summary=WorkSummary(10, 0, 10))
    data = status.to_dict()
    assert data["open"] is True
    assert data["summary"] == {"grossMinutes": 10, "deductionMinutes": 0, "netMinutes": 10}
    assert DayStatus(day_key="2026-06-15").to_dict()["record"] is None


@pytest.mark.parametrize("value,expected", [(True, True), (False, False), ("false", False), ("true", False), (1, False)])
def test_settings_allow_future_checkout_needs_a_real_boolean(value, expected):
    assert Settings.from_dict({"allowFutureCheckout": value}).allow_future_checkout is expected
