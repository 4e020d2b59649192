"""Durable key-value storage for work days and the settings singleton."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Protocol

from worktime.errors import InvalidInput
from worktime.fileio import read_json, remove_file, write_json_atomic
from worktime.models import WorkDayRecord
from worktime.timeconv import is_valid_day_key
from worktime.workspace import settings_path, workday_path, workdays_dir, workspace_root


class WorkdayStore(Protocol):
    def get_record(self, day_key: str) -> WorkDayRecord | None:
        raise NotImplementedError

    def put_record(self, record: WorkDayRecord) -> None:
        raise NotImplementedError

    def delete_record(self, day_key: str) -> bool:
        raise NotImplementedError

    def list_records(self) -> list[WorkDayRecord]:
        """All records, newest day key first."""
        raise NotImplementedError

    def get_settings(self) -> dict[str, Any] | None:
        raise NotImplementedError

    def put_settings(self, settings: dict[str, Any]) -> None:
        raise NotImplementedError


def _check_day_key(day_key: str) -> str:
    if not is_valid_day_key(day_key):
        raise InvalidInput(f"Invalid day key: {day_key!r}")
    return day_key


class JsonFileStore:
    """One JSON file per work day plus settings.json, all written atomically."""

    def __init__(self, root: Path | None = None):
        self.root = root if root is not None else workspace_root()

    def get_record(self, day_key: str) -> WorkDayRecord | None:
        data = read_json(workday_path(_check_day_key(day_key), self.root))
        return WorkDayRecord.from_dict(data) if data else None

    def put_record(self, record: WorkDayRecord) -> None:
        write_json_atomic(workday_path(_check_day_key(record.date), self.root), record.to_dict())

    def delete_record(self, day_key: str) -> bool:
        return remove_file(workday_path(_check_day_key(day_key), self.root))

    def list_records(self) -> list[WorkDayRecord]:
        directory = workdays_dir(self.root)
        if not directory.exists():
            return []
        records = []
        for path in directory.glob("*.json"):
            if not is_valid_day_key(path.stem):
                continue
            data = read_json(path)
            if data:
                records.append(WorkDayRecord.from_dict(data))
        records.sort(key=lambda r: r.date, reverse=True)
        return records

    def get_settings(self) -> dict[str, Any] | None:
        return read_json(settings_path(self.root))

    def put_settings(self, settings: dict[str, Any]) -> None:
        write_json_atomic(settings_path(self.root), settings)


class MemoryStore:
    """In-process store; values are copied in and out like a real backend."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._settings: dict[str, Any] | None = None

    def get_record(self, day_key: str) -> WorkDayRecord | None:
        data = self._records.get(day_key)
        return WorkDayRecord.from_dict(data) if data else None

    def put_record(self, record: WorkDayRecord) -> None:
        self._records[_check_day_key(record.date)] = record.to_dict()

    def delete_record(self, day_key: str) -> bool:
        return self._records.pop(day_key, None) is not None

    def list_records(self) -> list[WorkDayRecord]:
        return [WorkDayRecord.from_dict(self._records[k]) for k in sorted(self._records, reverse=True)]

    def get_settings(self) -> dict[str, Any] | None:
        return copy.deepcopy(self._settings)

    def put_settings(self, settings: dict[str, Any]) -> None:
        self._settings = copy.deepcopy(settings)
