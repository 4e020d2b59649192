from __future__ import annotations

import logging
import os
import secrets
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from worktime import (
    JsonFileStore,
    SessionMachine,
    UndoAction,
    WorktimeError,
    configure_logging,
    export_csv_text,
    export_json_text,
    format_minutes_hhmm,
    format_time_hm,
    host_timezone_matches,
    import_json,
    load_config,
    workspace_root,
)
from worktime.errors import StateConflict, UndoError

logger = logging.getLogger(__name__)

configure_logging(load_config())

app = FastAPI(title="Worktime", version="0.4.0")

security = HTTPBasic(auto_error=False)


# ── Errors ────────────────────────────────────────────────────

async def _worktime_error_handler(_request: Request, exc: WorktimeError) -> JSONResponse:
    code = status.HTTP_409_CONFLICT if isinstance(exc, (StateConflict, UndoError)) else 422
    logger.info("Rejected request: %s", exc.code)
    return JSONResponse(status_code=code, content={"ok": False, **exc.to_dict()})


app.add_exception_handler(WorktimeError, _worktime_error_handler)  # type: ignore[arg-type]


# ── Auth ──────────────────────────────────────────────────────

def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("WORKTIME_USERNAME", "")
    expected_password = os.environ.get("WORKTIME_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def get_machine() -> SessionMachine:
    root = workspace_root()
    return SessionMachine(JsonFileStore(root), config=load_config(root))


# ── Helpers ───────────────────────────────────────────────────

def _optional_time(payload: dict[str, Any], key: str = "time") -> str | None:
    value = payload.get(key)
    return str(value) if value else None


def _day_row(machine: SessionMachine, record) -> dict[str, Any]:
    summary = machine.summarize(record)
    return {
        **record.to_dict(),
        "checkIn": format_time_hm(record.check_in_ms) if record.check_in_ms else "",
        "checkOut": format_time_hm(record.check_out_ms) if record.check_out_ms else "",
        "summary": summary.to_dict() if summary else None,
        "net": format_minutes_hhmm(summary.net_minutes) if summary else "",
    }


# ── Endpoints ─────────────────────────────────────────────────

@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"ok": "true"}


@app.get("/api/today")
def api_today(username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> dict[str, Any]:
    day = machine.status()
    return {
        "ok": True,
        **day.to_dict(),
        "timezone": machine.settings.timezone,
        "hostTimezoneMatches": host_timezone_matches(machine.now()),
    }


@app.post("/api/checkin")
def api_checkin(
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    action = machine.check_in(_optional_time(payload))
    return {"ok": True, "undo": action.to_dict(), "today": machine.status().to_dict()}


@app.post("/api/checkout")
def api_checkout(
    payload: dict[str, Any] = Body(default={}),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    action = machine.check_out(_optional_time(payload))
    return {"ok": True, "undo": action.to_dict(), "today": machine.status().to_dict()}


@app.post("/api/undo")
def api_undo(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    machine.undo(UndoAction.from_dict(payload))
    return {"ok": True, "today": machine.status().to_dict()}


@app.get("/api/days")
def api_list_days(username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> dict[str, Any]:
    return {"ok": True, "days": [_day_row(machine, r) for r in machine.records()]}


@app.put("/api/days/{day_key}")
def api_edit_day(
    day_key: str,
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    check_in = payload.get("checkIn")
    if not check_in:
        raise HTTPException(status_code=400, detail="Missing checkIn")
    record = machine.edit_record(day_key, str(check_in), _optional_time(payload, "checkOut"))
    return {"ok": True, "day": _day_row(machine, record)}


@app.delete("/api/days/{day_key}")
def api_delete_day(day_key: str, username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> dict[str, Any]:
    if not machine.delete_record(day_key):
        raise HTTPException(status_code=404, detail=f"No record for {day_key}")
    return {"ok": True}


@app.get("/api/rules")
def api_get_rules(username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> dict[str, Any]:
    return {"ok": True, "rules": [r.to_dict() for r in machine.rules]}


@app.put("/api/rules")
def api_save_rules(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    rules = payload.get("rules")
    if not isinstance(rules, list):
        raise HTTPException(status_code=400, detail="Missing rules")
    saved = machine.save_rules(rules)
    return {"ok": True, "rules": [r.to_dict() for r in saved]}


@app.post("/api/rules/reset")
def api_reset_rules(username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> dict[str, Any]:
    return {"ok": True, "rules": [r.to_dict() for r in machine.reset_rules()]}


@app.put("/api/settings")
def api_update_settings(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    if "allowFutureCheckout" in payload:
        machine.set_allow_future_checkout(bool(payload["allowFutureCheckout"]))
    return {"ok": True, "settings": machine.settings.to_dict()}


@app.post("/api/calc")
def api_calc(
    payload: dict[str, Any] = Body(...),
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    summary = machine.calculate(
        str(payload.get("startDate", "")),
        str(payload.get("startTime", "")),
        str(payload.get("endDate", "")),
        str(payload.get("endTime", "")),
    )
    return {"ok": True, **summary.to_dict()}


@app.get("/api/export.csv")
def api_export_csv(username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> PlainTextResponse:
    filename = f"worktime_{machine.today()}.csv"
    return PlainTextResponse(
        export_csv_text(machine),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/export.json")
def api_export_json(username: str = Depends(get_current_user), machine: SessionMachine = Depends(get_machine)) -> PlainTextResponse:
    filename = f"worktime_{machine.today()}.json"
    return PlainTextResponse(
        export_json_text(machine),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/api/import")
async def api_import(
    request: Request,
    username: str = Depends(get_current_user),
    machine: SessionMachine = Depends(get_machine),
) -> dict[str, Any]:
    result = import_json(machine, await request.body())
    return {"ok": True, **result.to_dict()}
