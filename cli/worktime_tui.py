#!/usr/bin/env python3
"""Worktime TUI: check in, check out and review days from the terminal."""

from __future__ import annotations

import threading

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.widgets import DataTable, Footer, Header, Input, Static

from worktime import (
    JsonFileStore,
    MinuteTicker,
    SessionMachine,
    UndoAction,
    WorktimeError,
    configure_logging,
    format_minutes_hhmm,
    format_time_hm,
    host_timezone_matches,
    load_config,
    periodic_minute_signal,
    workspace_root,
)


def _status_text(machine: SessionMachine) -> str:
    day = machine.status()
    lines = [f"[b]{day.day_key}[/b]  ({machine.settings.timezone})"]
    if not host_timezone_matches(machine.now()):
        lines.append("[yellow]Device clock is in a different timezone; times are shown in the fixed zone.[/yellow]")
    if day.record is None:
        lines.append("Not checked in yet.")
        return "\n".join(lines)

    rec = day.record
    out = format_time_hm(rec.check_out_ms) if rec.check_out_ms is not None else "in progress"
    lines.append(f"Check-in {format_time_hm(rec.check_in_ms)}   Check-out {out}")
    if day.summary:
        s = day.summary
        lines.append(
            f"Gross {format_minutes_hhmm(s.gross_minutes)}   "
            f"Break -{s.deduction_minutes} min   "
            f"Net [b]{format_minutes_hhmm(s.net_minutes)}[/b]"
        )
    for t in day.targets:
        mark = "✓" if t.achieved else " "
        lines.append(f"  [{mark}] {format_minutes_hhmm(t.net_minutes)} net at {format_time_hm(t.reached_at_ms)}")
    return "\n".join(lines)


class WorktimeApp(App):
    CSS = """
    #status { padding: 1 2; border: round $accent; height: auto; }
    #time { margin: 1 0; }
    #days { height: 1fr; }
    """

    BINDINGS = [
        Binding("i", "check_in", "Check in"),
        Binding("o", "check_out", "Check out"),
        Binding("u", "undo", "Undo"),
        Binding("d", "delete_day", "Delete day"),
        Binding("escape", "blur_input", "Back", show=False),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, machine: SessionMachine) -> None:
        super().__init__()
        self.machine = machine
        self._undo: UndoAction | None = None
        self._ticker: MinuteTicker | None = None
        self._ui_thread: int | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Vertical():
            yield Static(id="status")
            yield Input(placeholder="HH:MM then Enter to check in or out (Esc, then i/o to use now)", id="time")
            yield DataTable(id="days", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "Worktime"
        table = self.query_one("#days", DataTable)
        table.add_columns("Date", "In", "Out", "Gross", "Break", "Net")
        self._ui_thread = threading.get_ident()
        self._ticker = periodic_minute_signal(self._on_tick)

    def on_unmount(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()

    def _on_tick(self) -> None:
        if threading.get_ident() == self._ui_thread:
            self._refresh()
        else:
            self.call_from_thread(self._refresh)

    def _refresh(self) -> None:
        self.query_one("#status", Static).update(_status_text(self.machine))
        table = self.query_one("#days", DataTable)
        table.clear()
        for rec in self.machine.records():
            summary = self.machine.summarize(rec)
            table.add_row(
                rec.date,
                format_time_hm(rec.check_in_ms),
                format_time_hm(rec.check_out_ms) if rec.check_out_ms is not None else "",
                format_minutes_hhmm(summary.gross_minutes) if summary else "",
                str(summary.deduction_minutes) if summary else "",
                format_minutes_hhmm(summary.net_minutes) if summary else "",
                key=rec.date,
            )

    def _manual_time(self) -> str | None:
        field = self.query_one("#time", Input)
        value = field.value.strip()
        field.value = ""
        return value or None

    def _run(self, label: str, op) -> None:
        try:
            result = op()
        except WorktimeError as exc:
            self.notify(str(exc), title=label, severity="error")
            return
        if isinstance(result, UndoAction):
            self._undo = result
            window = self.machine.config.undo_window_seconds
            self.notify(f"{label} saved. Press u to undo.", timeout=window)
        else:
            self.notify(f"{label} done.")
        self._refresh()

    def action_check_in(self) -> None:
        hm = self._manual_time()
        self._run("Check-in", lambda: self.machine.check_in(hm))

    def action_check_out(self) -> None:
        hm = self._manual_time()
        self._run("Check-out", lambda: self.machine.check_out(hm))

    def action_undo(self) -> None:
        if self._undo is None:
            self.notify("Nothing to undo.")
            return
        action, self._undo = self._undo, None
        self._run("Undo", lambda: self.machine.undo(action))

    def action_delete_day(self) -> None:
        table = self.query_one("#days", DataTable)
        if table.row_count == 0:
            return
        day_key = str(table.coordinate_to_cell_key(table.cursor_coordinate).row_key.value)
        self._run(f"Delete {day_key}", lambda: self.machine.delete_record(day_key))

    def action_blur_input(self) -> None:
        self.set_focus(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Enter in the time field checks in, or checks out an open day."""
        if self.machine.open_record() is None:
            self.action_check_in()
        else:
            self.action_check_out()
        self.set_focus(None)


def main() -> None:
    root = workspace_root()
    root.mkdir(parents=True, exist_ok=True)
    config = load_config(root)
    configure_logging(config, filename=root / "worktime.log")
    machine = SessionMachine(JsonFileStore(root), config=config)
    WorktimeApp(machine).run()


if __name__ == "__main__":
    main()
