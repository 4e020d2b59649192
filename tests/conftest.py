"""Shared test fixtures for Worktime tests."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from worktime.config import AppConfig
from worktime.session import SessionMachine
from worktime.store import MemoryStore
from worktime.timeconv import MS_PER_MINUTE, resolve_local_time


def utc_ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp()) * 1000


class FakeClock:
    """Settable clock; call it to read epoch milliseconds."""

    def __init__(self, ms: int):
        self.ms = ms

    def __call__(self) -> int:
        return self.ms

    def set_local(self, day_key: str, hm: str) -> None:
        self.ms = resolve_local_time(day_key, hm)

    def advance(self, minutes: int = 0, seconds: int = 0) -> None:
        self.ms += minutes * MS_PER_MINUTE + seconds * 1000


@pytest.fixture
def clock() -> FakeClock:
    """Clock at 2026-06-15 17:00 Budapest time (CEST)."""
    return FakeClock(resolve_local_time("2026-06-15", "17:00"))


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def machine(store: MemoryStore, clock: FakeClock) -> SessionMachine:
    return SessionMachine(store, clock=clock)


@pytest.fixture
def long_undo_machine(store: MemoryStore, clock: FakeClock) -> SessionMachine:
    return SessionMachine(store, clock=clock, config=AppConfig(undo_window_seconds=3 * 24 * 3600))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Temporary data root exported as WORKTIME_ROOT."""
    root = tmp_path / "worktime"
    root.mkdir(parents=True)
    os.environ["WORKTIME_ROOT"] = str(root)
    yield root
    if "WORKTIME_ROOT" in os.environ:
        del os.environ["WORKTIME_ROOT"]
