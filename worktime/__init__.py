"""Worktime core library: fixed-timezone work-time tracking.

Public API re-exports for convenient imports:
    from worktime import SessionMachine, JsonFileStore, summarize_work, ...
"""

# Time conversion
from worktime.timeconv import (
    TZ,
    TZ_NAME,
    MinuteTicker,
    add_days,
    day_key_from_epoch,
    format_minutes_hhmm,
    format_time_hm,
    host_timezone_matches,
    is_representable_ms,
    is_valid_day_key,
    is_valid_time_of_day,
    minutes_between,
    now_ms,
    periodic_minute_signal,
    resolve_local_time,
    today_key,
)

# Rules
from worktime.rules import (
    achieved_at,
    deduction_minutes,
    net_minutes_from_gross,
    normalize_rules,
    summarize_local_span,
    summarize_work,
    target_gross_for_net,
    target_instant_for_net,
    target_progress,
    validate_rule_order,
)

# Models
from worktime.models import (
    DEFAULT_RULES,
    SCHEMA_VERSION,
    DayStatus,
    DeductionRule,
    Settings,
    TargetProgress,
    UndoAction,
    WorkDayRecord,
    WorkSummary,
)

# Storage & configuration
from worktime.store import JsonFileStore, MemoryStore, WorkdayStore
from worktime.config import AppConfig, configure_logging, load_config
from worktime.workspace import workspace_root

# Sessions
from worktime.session import SessionMachine, load_settings

# Export / import
from worktime.transfer import (
    ImportResult,
    build_export_json,
    export_csv_text,
    export_json_text,
    import_json,
    parse_import_json,
    records_to_csv,
)

# Errors
from worktime.errors import WorktimeError
