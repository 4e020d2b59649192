"""User configuration (config.yaml) and logging setup."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from worktime.fileio import read_yaml
from worktime.workspace import config_path

DEFAULT_TARGETS = (360, 420, 480)
DEFAULT_UNDO_WINDOW_SECONDS = 8
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class AppConfig:
    targets: list[int] = field(default_factory=lambda: list(DEFAULT_TARGETS))
    undo_window_seconds: int = DEFAULT_UNDO_WINDOW_SECONDS
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AppConfig:
        if not d or not isinstance(d, dict):
            return cls()
        targets = d.get("targets")
        if isinstance(targets, list):
            targets = [int(t) for t in targets if isinstance(t, (int, float)) and t > 0]
        else:
            targets = list(DEFAULT_TARGETS)
        return cls(
            targets=targets,
            undo_window_seconds=max(0, int(d.get("undo_window_seconds", DEFAULT_UNDO_WINDOW_SECONDS))),
            log_level=str(d.get("log_level", "INFO")).upper(),
        )

    @property
    def undo_window_ms(self) -> int:
        return self.undo_window_seconds * 1000


def load_config(root: Path | None = None) -> AppConfig:
    """Load config.yaml from the data root; env WORKTIME_LOG_LEVEL wins for log_level."""
    config = AppConfig.from_dict(read_yaml(config_path(root)))
    env_level = os.environ.get("WORKTIME_LOG_LEVEL")
    if env_level:
        config.log_level = env_level.upper()
    return config


def configure_logging(config: AppConfig | None = None, filename: Path | None = None) -> None:
    """Configure root logging; ``filename`` sends records to a file instead of stderr."""
    level_name = (config or AppConfig()).log_level
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    if filename is not None:
        logging.basicConfig(level=level, format=LOG_FORMAT, filename=str(filename))
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
