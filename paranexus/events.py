from __future__ import annotations

from collections.abc import Callable
import contextlib
from datetime import datetime, timezone
import json
import secrets
import time
from pathlib import Path
from typing import Any

EventHandler = Callable[[dict[str, Any]], None]

SEVERITIES = ("debug", "info", "warn", "error")


def utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).replace(microsecond=0).isoformat()


def new_event_id() -> str:
    stamp = int(time.time() * 1000)
    return f"evt-{stamp}-{secrets.token_hex(4)}"


class EventBus:
    """Audit trail for store mutations and collaborator fallbacks.

    Events are appended as JSON lines once a log path is known; anything
    published before that is held in memory and flushed by `set_log_path`.
    """

    def __init__(self, log_path: Path | None = None) -> None:
        self._log_path = log_path
        self._pending: list[dict[str, Any]] = []
        self._handlers: list[EventHandler] = []
        self.events_written = 0
        self.published = 0
        if self._log_path is not None:
            self._prepare_log_path()

    @property
    def log_path(self) -> Path | None:
        return self._log_path

    @property
    def pending(self) -> list[dict[str, Any]]:
        return list(self._pending)

    def set_log_path(self, path: Path) -> None:
        self._log_path = path
        self._prepare_log_path()
        pending = list(self._pending)
        self._pending.clear()
        for event in pending:
            self._append_to_disk(event)

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._handlers.remove(handler)

        return _unsubscribe

    def publish(
        self,
        event_type: str,
        message: str,
        *,
        severity: str = "info",
        source: str = "sync",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        level = str(severity or "info").lower()
        if level not in SEVERITIES:
            level = "info"
        event = {
            "id": new_event_id(),
            "ts": utc_now_iso(),
            "type": str(event_type or "system.event"),
            "severity": level,
            "source": str(source or "system"),
            "message": " ".join(str(message or "").split()),
            "metadata": dict(metadata or {}),
        }
        self.published += 1
        if self._log_path is None:
            self._pending.append(event)
        else:
            self._append_to_disk(event)
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:  # noqa: BLE001
                continue
        return event

    def _prepare_log_path(self) -> None:
        if self._log_path is None:
            return
        self._log_path.parent.mkdir(parents=True, exist_ok=True)
        self._log_path.touch(exist_ok=True)

    def _append_to_disk(self, event: dict[str, Any]) -> None:
        if self._log_path is None:
            return
        with self._log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(event, sort_keys=True, ensure_ascii=True))
            handle.write("\n")
        self.events_written += 1


def read_recent_events(path: Path, *, limit: int = 20) -> list[dict[str, Any]]:
    if not path.exists():
        return []
    events: list[dict[str, Any]] = []
    for raw in path.read_text(encoding="utf-8").splitlines()[-max(1, limit) :]:
        line = raw.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            events.append(parsed)
    return events
