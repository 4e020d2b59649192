"""Error taxonomy for Worktime.

Every error carries a stable ``code`` (used by the API and the export
format) and a human-readable default message. All of them subclass
``ValueError`` so callers can treat them as ordinary invalid-input failures.
"""

from __future__ import annotations


class WorktimeError(ValueError):
    """Base class for recoverable Worktime errors."""

    code = "ERROR"
    message = "Something went wrong."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "detail": str(self)}


# ── Validation ────────────────────────────────────────────────


class ValidationError(WorktimeError):
    """Input that can never be accepted, regardless of state."""


class InvalidTime(ValidationError):
    code = "INVALID_TIME"
    message = "Invalid time. Use the 24-hour HH:MM format."


class InvalidInput(ValidationError):
    code = "INVALID_INPUT"
    message = "Invalid date or time input."


class NegativeDuration(ValidationError):
    code = "NEGATIVE_DURATION"
    message = "The end cannot be before the start."


class RuleOrder(ValidationError):
    code = "RULE_ORDER"
    message = "Rule thresholds must be strictly increasing."


# ── State conflicts ───────────────────────────────────────────


class StateConflict(WorktimeError):
    """Valid input that conflicts with the stored state."""


class AlreadyOpen(StateConflict):
    code = "ALREADY_OPEN"
    message = "A work day is already in progress. Check out, edit or delete it first."


class AlreadyCheckedIn(StateConflict):
    code = "ALREADY_CHECKED_IN"
    message = "Today already has a check-in. Edit the day instead."


class NoOpenDay(StateConflict):
    code = "NO_OPEN_DAY"
    message = "There is no work day in progress."


class CheckoutBeforeCheckin(StateConflict):
    code = "CHECKOUT_BEFORE_CHECKIN"
    message = "Check-out cannot be before check-in."


class FutureTime(StateConflict):
    code = "FUTURE_TIME"
    message = "The time cannot be in the future."


class FutureCheckin(FutureTime):
    code = "FUTURE_CHECKIN"
    message = "Check-in cannot be in the future."


class FutureCheckout(FutureTime):
    code = "FUTURE_CHECKOUT"
    message = "Check-out cannot be in the future unless future check-out is allowed."


class RecordNotFound(StateConflict):
    code = "NO_RECORD"
    message = "There is no record for that day."


# ── Import ────────────────────────────────────────────────────


class ImportFormatError(WorktimeError):
    """The import payload does not follow the export format."""


class InvalidJson(ImportFormatError):
    code = "INVALID_JSON"
    message = "Invalid JSON file."


class MissingRecords(ImportFormatError):
    code = "MISSING_RECORDS"
    message = "The JSON export has no records list."


class MissingSettings(ImportFormatError):
    code = "MISSING_SETTINGS"
    message = "The JSON export has no settings object."


# ── Undo ──────────────────────────────────────────────────────


class UndoError(WorktimeError):
    """A compensating action could not be applied."""


class UndoExpired(UndoError):
    code = "UNDO_EXPIRED"
    message = "The undo window has passed."


class UndoStale(UndoError):
    code = "UNDO_STALE"
    message = "The day changed since this action; it can no longer be undone."
