from __future__ import annotations

import argparse
import contextlib
from datetime import datetime, timezone
import getpass
from pathlib import Path
import sys
from typing import Callable

from . import __version__
from .config import explain_config
from .events import read_recent_events
from .gate import PassphraseGate
from .inference import format_runtime_lines
from .runtime import NexusRuntime, open_runtime


GATE_ATTEMPTS = 3


def _append_runtime_log(log_file: Path, *, level: str, message: str) -> None:
    normalized_message = " ".join(message.split())
    stamp = datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()
    line = f"{stamp} [{level.lower()}] {normalized_message}\n"
    with contextlib.suppress(Exception):
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as handle:
            handle.write(line)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="paranexus",
        description="PARA Nexus: daily tasks and projects kept in sync, PARA style",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--workspace", type=Path, default=None, help="Workspace directory (default: search upward for paranexus.toml)")

    sub = parser.add_subparsers(dest="cmd", required=False)

    sub.add_parser("app", help="Unlock and start the interactive terminal app.")

    exec_cmd = sub.add_parser("exec", help="Run one command (same syntax as the app input) and print the reply.")
    exec_cmd.add_argument("words", nargs=argparse.REMAINDER, help="Command text, e.g. `add Buy milk | cat=areas`")

    day = sub.add_parser("day", help="Print the daily board.")
    day.add_argument("date", nargs="?", default="", help="YYYY-MM-DD, today, tomorrow, +N or -N")

    sub.add_parser("overdue", help="Print overdue tasks grouped by category.")

    week = sub.add_parser("week", help="Print the week strip.")
    week.add_argument("start", nargs="?", default="", help="First day (default: today)")

    sub.add_parser("doctor", help="Check config, storage, and inference providers.")

    return parser


def run_gate(
    gate: PassphraseGate,
    *,
    prompt: Callable[[str], str] = getpass.getpass,
    out: Callable[[str], None] = print,
    attempts: int = GATE_ATTEMPTS,
) -> bool:
    """Create or check the local passphrase on the terminal."""

    if not gate.is_initialized():
        out("Set a passphrase for this workspace.")
        for _ in range(attempts):
            ok, message = gate.initialize(prompt("New passphrase: "), prompt("Confirm passphrase: "))
            out(message)
            if ok:
                return True
        return False

    for _ in range(attempts):
        ok, message = gate.verify(prompt("Passphrase: "))
        if ok:
            return True
        out(message)
    return False


def cmd_app(args: argparse.Namespace) -> int:
    try:
        from .app import run_terminal_app
    except ModuleNotFoundError as exc:
        if exc.name == "textual":
            print("Interactive app requires `textual`. Install it with `pip install textual`, then retry.", file=sys.stderr)
            return 1
        raise

    runtime = open_runtime(args.workspace)
    if runtime.config.gate.enabled:
        try:
            unlocked = run_gate(runtime.gate)
        except (EOFError, KeyboardInterrupt):
            unlocked = False
        if not unlocked:
            _append_runtime_log(runtime.paths.app_log, level="warn", message="gate: unlock failed")
            print("Locked.", file=sys.stderr)
            return 1
    _append_runtime_log(runtime.paths.app_log, level="info", message="app: unlocked")
    return run_terminal_app(runtime)


def _run_and_print(runtime: NexusRuntime, text: str) -> int:
    reply = runtime.runner.execute(text)
    if reply:
        print(reply)
    return 0


def cmd_exec(args: argparse.Namespace) -> int:
    text = " ".join(args.words).strip()
    if not text:
        print("usage: paranexus exec <command...> (try `paranexus exec help`)", file=sys.stderr)
        return 2
    return _run_and_print(open_runtime(args.workspace), text)


def cmd_day(args: argparse.Namespace) -> int:
    return _run_and_print(open_runtime(args.workspace), f"day {args.date}".strip())


def cmd_overdue(args: argparse.Namespace) -> int:
    return _run_and_print(open_runtime(args.workspace), "overdue")


def cmd_week(args: argparse.Namespace) -> int:
    return _run_and_print(open_runtime(args.workspace), f"week {args.start}".strip())


def cmd_doctor(args: argparse.Namespace) -> int:
    runtime = open_runtime(args.workspace)
    lines, problems = _doctor_report(runtime)
    print("\n".join(lines))
    if problems:
        print("\nProblems:", file=sys.stderr)
        for problem in problems:
            print(f"- {problem}", file=sys.stderr)
        return 1
    return 0


def _doctor_report(runtime: NexusRuntime) -> tuple[list[str], list[str]]:
    problems: list[str] = []
    state = runtime.store.state
    paths = runtime.paths
    lines = [
        "paranexus doctor",
        f"- workspace: {paths.workspace}",
        f"- config: {paths.config_toml} ({'present' if paths.config_toml.exists() else 'defaults'})",
        f"- state: {paths.state_dir}",
        f"- tasks: {len(state.tasks)}",
        f"- projects: {len(state.projects)}",
        f"- gate: {'enabled' if runtime.config.gate.enabled else 'disabled'}"
        f" ({'set' if runtime.gate.is_initialized() else 'not set'})",
        f"- python executable: {sys.executable}",
    ]
    if runtime.config_warning:
        problems.append(runtime.config_warning)

    try:
        import textual  # noqa: F401

        lines.append("- textual: import OK")
    except Exception as exc:  # noqa: BLE001
        problems.append(f"textual import failed: {exc}")

    lines.extend(f"- {line}" for line in format_runtime_lines(runtime.inference))
    if runtime.config.inference.provider != "none" and not runtime.inference.ready_order():
        lines.append("- assistant: local fallbacks only (no ready inference provider)")

    recent = [event for event in read_recent_events(paths.events_log, limit=50) if event.get("type") == "assistant.fallback"]
    if recent:
        lines.append(f"- recent assistant fallbacks: {len(recent)}")
        last = recent[-1]
        lines.append(f"  last: {last.get('ts', '')} {last.get('message', '')}")

    lines.append("")
    lines.append(explain_config(runtime.config, path=paths.config_toml))
    return lines, problems


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    argv = list(argv) if argv is not None else list(sys.argv[1:])
    args = parser.parse_args(argv)
    if args.cmd is None:
        args.cmd = "app"

    if args.cmd == "app":
        return cmd_app(args)
    if args.cmd == "exec":
        return cmd_exec(args)
    if args.cmd == "day":
        return cmd_day(args)
    if args.cmd == "overdue":
        return cmd_overdue(args)
    if args.cmd == "week":
        return cmd_week(args)
    if args.cmd == "doctor":
        return cmd_doctor(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
