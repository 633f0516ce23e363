from __future__ import annotations

import asyncio
from collections import deque
import contextlib
from datetime import datetime, timedelta, timezone
from typing import Any

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Footer, Input, Static, TextArea

from . import __version__
from .commands import parse_command
from .dates import date_key, parse_date_key
from .runtime import NexusRuntime
from .views import active_projects, format_project_line, overdue_groups, pinned_links, project_card, week_summary


ACTIVITY_LIMIT = 40
TRANSCRIPT_LIMIT = 400


def _summarize_text(text: str, *, limit: int = 140) -> str:
    value = " ".join(text.split())
    if len(value) <= limit:
        return value
    return f"{value[: limit - 3]}..."


def _activity_text(entries: list[str]) -> str:
    if not entries:
        return "Activity\n- none yet"
    return "Activity\n" + "\n".join(f"- {entry}" for entry in entries[:12])


class NexusTerminalApp(App[None]):
    CSS = """
    Screen {
        layout: vertical;
    }

    #status-bar {
        height: 1;
        padding: 0 1;
        background: $boost;
        color: $text;
    }

    #main {
        height: 1fr;
    }

    #left {
        width: 2fr;
    }

    #panel-day {
        height: 2fr;
        border: solid $accent;
        padding: 0 1;
    }

    #transcript {
        height: 1fr;
        border: solid $secondary;
        padding: 0 1;
    }

    #sidebar {
        width: 1fr;
        border: solid $secondary;
        padding: 0 1;
    }

    .panel {
        height: 1fr;
        border: solid $primary;
        margin: 0 0 1 0;
        padding: 0 1;
    }

    #input-box {
        margin: 0;
        border: solid $border-blurred;
    }

    #input-box:focus {
        border: solid $border;
    }

    Footer {
        dock: none;
    }
    """

    BINDINGS = [
        ("ctrl+c", "request_quit", "Quit"),
        ("ctrl+left", "previous_day", "Prev Day"),
        ("ctrl+right", "next_day", "Next Day"),
        ("ctrl+t", "go_today", "Today"),
        ("f5", "refresh_panels", "Refresh"),
    ]

    def __init__(self, runtime: NexusRuntime) -> None:
        super().__init__()
        self.runtime = runtime
        self.runner = runtime.runner
        self.command_lock = asyncio.Lock()
        self.activity_entries: deque[str] = deque(maxlen=ACTIVITY_LIMIT)
        self.transcript_lines: deque[str] = deque(maxlen=TRANSCRIPT_LIMIT)
        self.busy = False
        self._unsubscribe = runtime.bus.subscribe(self._on_bus_event)

    def compose(self) -> ComposeResult:
        yield Static("", id="status-bar")
        with Horizontal(id="main"):
            with Vertical(id="left"):
                yield Static("", id="panel-day")
                yield TextArea(
                    "",
                    id="transcript",
                    read_only=True,
                    show_cursor=False,
                    highlight_cursor_line=False,
                    show_line_numbers=False,
                    language=None,
                )
            with Vertical(id="sidebar"):
                yield Static("", id="panel-projects", classes="panel")
                yield Static("", id="panel-week", classes="panel")
                yield Static("", id="panel-overdue", classes="panel")
                yield Static("", id="panel-activity", classes="panel")
        yield Input(id="input-box", placeholder="Type a command (`help` lists them). Plain text adds a task.")
        yield Footer()

    def on_mount(self) -> None:
        self.status_bar = self.query_one("#status-bar", Static)
        self.day_panel = self.query_one("#panel-day", Static)
        self.transcript = self.query_one("#transcript", TextArea)
        self.projects_panel = self.query_one("#panel-projects", Static)
        self.week_panel = self.query_one("#panel-week", Static)
        self.overdue_panel = self.query_one("#panel-overdue", Static)
        self.activity_panel = self.query_one("#panel-activity", Static)
        self.input_box = self.query_one("#input-box", Input)
        self.input_box.focus()
        if self.runtime.config_warning:
            self._write_system(self.runtime.config_warning)
        if not self.runtime.inference.ready_order():
            self._write_system("no inference provider ready; categorization and breakdowns use local defaults.")
        self._write_system("ready. type `help` for commands.")
        self._refresh_panels()

    async def on_unmount(self) -> None:
        self._unsubscribe()

    async def action_request_quit(self) -> None:
        self.exit()

    async def action_previous_day(self) -> None:
        await self._shift_day(-1)

    async def action_next_day(self) -> None:
        await self._shift_day(1)

    async def action_go_today(self) -> None:
        await self._run_command("day today", echo=False)

    def action_refresh_panels(self) -> None:
        self._refresh_panels()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        text = " ".join(event.value.split())
        event.input.value = ""
        if not text:
            return
        cmd, _ = parse_command(text)
        if not self.runner.handles(cmd):
            text = f"add {text}"
        await self._run_command(text)

    async def _shift_day(self, days: int) -> None:
        current = parse_date_key(self.runner.selected_day)
        if current is None:
            return
        await self._run_command(f"day {date_key(current + timedelta(days=days))}", echo=False)

    async def _run_command(self, text: str, *, echo: bool = True) -> None:
        if echo:
            self._write_user(text)
        cmd, _ = parse_command(text)
        async with self.command_lock:
            self.busy = True
            self._refresh_status()
            try:
                # Model calls block for seconds; keep the UI responsive.
                reply = await asyncio.to_thread(self.runner.execute, text)
            except Exception as exc:  # noqa: BLE001
                reply = ""
                self._write_system(f"ERROR: {cmd}: {_summarize_text(str(exc) or exc.__class__.__name__)}")
                self.runtime.bus.publish(
                    "ui.error",
                    f"{cmd}: {_summarize_text(str(exc))}",
                    severity="error",
                    source="ui",
                    metadata={"command": cmd},
                )
            finally:
                self.busy = False
        if reply and (echo or cmd != "day"):
            self._write_nexus(reply)
        self._refresh_panels()

    def _on_bus_event(self, event: dict[str, Any]) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        self.activity_entries.appendleft(f"{stamp} {event.get('type', '')}: {_summarize_text(str(event.get('message', '')))}")

    def _refresh_status(self) -> None:
        inference = self.runtime.inference.selected_provider or "local"
        state = self.runtime.store.state
        self.status_bar.update(
            f"{self.runtime.config.workspace.name} v{__version__} | day {self.runner.selected_day} | "
            f"tasks {len(state.tasks)} | projects {len(state.projects)} | assistant {inference}"
            + (" | working..." if self.busy else "")
        )

    def _refresh_panels(self) -> None:
        state = self.runtime.store.state
        today = self.runner.today
        self.day_panel.update(self.runner.render_day(self.runner.selected_day))

        projects = active_projects(state)
        project_lines = [format_project_line(project_card(project)) for project in projects[:12]] or ["none"]
        links = pinned_links(state)
        if links:
            project_lines.append("")
            project_lines.append("Pinned")
            project_lines.extend(
                f"{task.link_metadata.display_title if task.link_metadata else task.title}" for task in links[:6]
            )
        self.projects_panel.update("Projects\n" + "\n".join(project_lines))

        week = week_summary(state, today, days=self.runtime.config.daily.week_days)
        self.week_panel.update(
            "Week\n"
            + "\n".join(f"{day.date} P{day.project_count} A{day.area_count} ({day.total})" for day in week)
        )

        groups = overdue_groups(state, today)
        self.overdue_panel.update(
            f"Overdue ({groups.total})\n"
            f"- projects: {len(groups.projects)}\n"
            f"- areas: {len(groups.areas)}\n"
            f"- other: {len(groups.others)}"
            + ("\n`recover` moves all to today" if groups.total else "")
        )
        self.activity_panel.update(_activity_text(list(self.activity_entries)))
        self._refresh_status()

    def _write_nexus(self, text: str) -> None:
        for line in text.splitlines():
            self._append_transcript_line(f"Nexus: {line}")
        self._append_app_log("nexus", text)

    def _write_user(self, text: str) -> None:
        self._append_transcript_line(f"You: {text}")
        self._append_app_log("user", text)

    def _write_system(self, text: str) -> None:
        self._append_transcript_line(f"System: {text}")
        self._append_app_log("system", text)

    def _append_transcript_line(self, line: str) -> None:
        self.transcript_lines.append(line)
        self.transcript.load_text("\n".join(self.transcript_lines))
        self.transcript.scroll_end(animate=False)

    def _append_app_log(self, channel: str, message: str) -> None:
        path = self.runtime.paths.app_log
        stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
        safe_channel = channel.strip().lower() or "system"
        safe_message = " ".join(message.split())
        with contextlib.suppress(Exception):
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as handle:
                handle.write(f"{stamp} [{safe_channel}] {safe_message}\n")


def run_terminal_app(runtime: NexusRuntime) -> int:
    app = NexusTerminalApp(runtime)
    app.run(mouse=False)
    return 0
