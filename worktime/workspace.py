"""Data root and path helpers for Worktime."""

from __future__ import annotations

import os
from pathlib import Path


def workspace_root() -> Path:
    """Directory holding settings.json, config.yaml and workdays/."""
    return Path(
        os.environ.get("WORKTIME_ROOT", str(Path.home() / "worktime"))
    ).expanduser().resolve()


def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.json"


def config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "config.yaml"


def workdays_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "workdays"


def workday_path(day_key: str, root: Path | None = None) -> Path:
    return workdays_dir(root) / f"{day_key}.json"
