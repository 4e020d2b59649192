"""Typed dataclasses for the Worktime data model.

All persisted models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from worktime.errors import InvalidInput
from worktime.timeconv import TZ_NAME

SCHEMA_VERSION = 1
RECORD_VERSION = 1


def coerce_int(value: Any) -> int | None:
    """Coerce numbers and numeric strings to int; None for anything else."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(math.floor(number))


# ── Rules ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class DeductionRule:
    """Deduct ``deduction_min`` once gross time passes ``threshold_min``."""

    threshold_min: int
    deduction_min: int

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DeductionRule:
        rule = parse_rule(d)
        if rule is None:
            raise InvalidInput(f"Invalid deduction rule: {d!r}")
        return rule

    def to_dict(self) -> dict[str, int]:
        return {"thresholdMin": self.threshold_min, "deductionMin": self.deduction_min}


def parse_rule(obj: Any) -> DeductionRule | None:
    """Coerce a rule-like value, or None when either field is not numeric.

    Accepts DeductionRule instances and mappings in camelCase or snake_case.
    Values are floored and clamped to zero.
    """
    if isinstance(obj, DeductionRule):
        return DeductionRule(max(0, int(obj.threshold_min)), max(0, int(obj.deduction_min)))
    if not isinstance(obj, dict):
        return None
    threshold = coerce_int(obj.get("thresholdMin", obj.get("threshold_min")))
    deduction = coerce_int(obj.get("deductionMin", obj.get("deduction_min")))
    if threshold is None or deduction is None:
        return None
    return DeductionRule(max(0, threshold), max(0, deduction))


DEFAULT_RULES: tuple[DeductionRule, ...] = (
    DeductionRule(360, 30),
    DeductionRule(540, 50),
)


# ── Work day ──────────────────────────────────────────────────


@dataclass
class WorkDayRecord:
    date: str = ""
    check_in_ms: int = 0
    check_out_ms: int | None = None
    created_at_ms: int = 0
    updated_at_ms: int = 0
    version: int = RECORD_VERSION

    @property
    def is_open(self) -> bool:
        return self.check_out_ms is None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> WorkDayRecord:
        return cls(
            date=str(d.get("date", "")),
            check_in_ms=coerce_int(d.get("checkInMs")) or 0,
            check_out_ms=coerce_int(d.get("checkOutMs")),
            created_at_ms=coerce_int(d.get("createdAtMs")) or 0,
            updated_at_ms=coerce_int(d.get("updatedAtMs")) or 0,
            version=coerce_int(d.get("version")) or RECORD_VERSION,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "date": self.date,
            "checkInMs": self.check_in_ms,
            "checkOutMs": self.check_out_ms,
            "createdAtMs": self.created_at_ms,
            "updatedAtMs": self.updated_at_ms,
        }


# ── Settings ──────────────────────────────────────────────────


@dataclass
class Settings:
    schema_version: int = SCHEMA_VERSION
    timezone: str = TZ_NAME
    rules: list[DeductionRule] = field(default_factory=lambda: list(DEFAULT_RULES))
    open_record_date: str | None = None
    allow_future_checkout: bool = False
    day_key_mode: str = "checkin"

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> Settings:
        """Build settings from stored data, backfilling anything missing.

        The timezone is a constant of the dataset and is not read back.
        Rules are taken as stored; callers normalize them.
        """
        if not d or not isinstance(d, dict):
            return cls()
        defaults = cls()
        raw_rules = d.get("rules")
        if isinstance(raw_rules, list):
            rules = [r for r in (parse_rule(x) for x in raw_rules) if r is not None]
        else:
            rules = list(defaults.rules)
        open_date = d.get("openRecordDate")
        return cls(
            schema_version=coerce_int(d.get("schemaVersion")) or 0,
            rules=rules,
            open_record_date=str(open_date) if open_date else None,
            allow_future_checkout=d.get("allowFutureCheckout") is True,
            day_key_mode=str(d.get("dayKeyMode") or defaults.day_key_mode),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "timezone": self.timezone,
            "rules": [r.to_dict() for r in self.rules],
            "openRecordDate": self.open_record_date,
            "allowFutureCheckout": self.allow_future_checkout,
            "dayKeyMode": self.day_key_mode,
        }


# ── Undo ──────────────────────────────────────────────────────


UNDO_CHECKIN = "checkin"
UNDO_CHECKOUT = "checkout"


@dataclass(frozen=True)
class UndoAction:
    """Describes how to revert a check-in or check-out.

    ``check_in_ms``/``check_out_ms`` are the values the operation wrote;
    undo refuses to run once the stored day differs from them.
    """

    kind: str
    date: str
    check_in_ms: int
    check_out_ms: int | None
    issued_at_ms: int
    expires_at_ms: int

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UndoAction:
        return cls(
            kind=str(d.get("kind", "")),
            date=str(d.get("date", "")),
            check_in_ms=coerce_int(d.get("checkInMs")) or 0,
            check_out_ms=coerce_int(d.get("checkOutMs")),
            issued_at_ms=coerce_int(d.get("issuedAtMs")) or 0,
            expires_at_ms=coerce_int(d.get("expiresAtMs")) or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "date": self.date,
            "checkInMs": self.check_in_ms,
            "checkOutMs": self.check_out_ms,
            "issuedAtMs": self.issued_at_ms,
            "expiresAtMs": self.expires_at_ms,
        }


# ── Summaries ─────────────────────────────────────────────────


@dataclass(frozen=True)
class WorkSummary:
    gross_minutes: int
    deduction_minutes: int
    net_minutes: int

    def to_dict(self) -> dict[str, int]:
        return {
            "grossMinutes": self.gross_minutes,
            "deductionMinutes": self.deduction_minutes,
            "netMinutes": self.net_minutes,
        }


@dataclass(frozen=True)
class TargetProgress:
    net_minutes: int
    reached_at_ms: int
    achieved: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "netMinutes": self.net_minutes,
            "reachedAtMs": self.reached_at_ms,
            "achieved": self.achieved,
        }


@dataclass
class DayStatus:
    day_key: str = ""
    record: WorkDayRecord | None = None
    summary: WorkSummary | None = None
    targets: list[TargetProgress] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.record is not None and self.record.is_open

    def to_dict(self) -> dict[str, Any]:
        return {
            "dayKey": self.day_key,
            "open": self.is_open,
            "record": self.record.to_dict() if self.record else None,
            "summary": self.summary.to_dict() if self.summary else None,
            "targets": [t.to_dict() for t in self.targets],
        }
