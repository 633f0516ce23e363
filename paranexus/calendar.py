from __future__ import annotations

from collections.abc import Callable, Sequence
import json
from pathlib import Path
from typing import Protocol

from .assistant import Assistant
from .dates import today_key
from .events import EventBus
from .models import CalendarEvent, EventMapping, ParaCategory, Project, Task, new_id
from .sync import SyncEngine


IMPORT_NOTE = "Imported from calendar ({start} - {end})"


class CalendarSource(Protocol):
    def fetch_events(self, account: str, projects: Sequence[Project]) -> list[CalendarEvent]: ...


class InferenceCalendarSource:
    """Asks the model for a plausible day of events around the active projects."""

    def __init__(self, assistant: Assistant) -> None:
        self.assistant = assistant

    def fetch_events(self, account: str, projects: Sequence[Project]) -> list[CalendarEvent]:
        return self.assistant.generate_events(account, projects)


class JsonFileCalendarSource:
    """Reads events from a JSON list, e.g. an export from a real calendar."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def fetch_events(self, account: str, projects: Sequence[Project]) -> list[CalendarEvent]:
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except Exception:  # noqa: BLE001
            return []
        if isinstance(payload, dict):
            payload = payload.get("events")
        if not isinstance(payload, list):
            return []
        events: list[CalendarEvent] = []
        for index, raw in enumerate(payload, start=1):
            event = CalendarEvent.from_mapping(raw, fallback_id=str(index))
            if event is not None:
                events.append(event)
        return events


def event_to_task(event: CalendarEvent, category: ParaCategory, date: str) -> Task:
    return Task(
        id=new_id(),
        title=event.summary,
        completed=False,
        category=category,
        date=date,
        notes=IMPORT_NOTE.format(start=event.start, end=event.end),
    )


class CalendarImport:
    """One fetch, map, import round. `import_all` empties the session."""

    def __init__(
        self,
        source: CalendarSource,
        assistant: Assistant,
        *,
        account: str = "",
        bus: EventBus | None = None,
        today: Callable[[], str] = today_key,
    ) -> None:
        self.source = source
        self.assistant = assistant
        self.account = account
        self.bus = bus
        self._today = today
        self.events: list[CalendarEvent] = []
        self.mappings: dict[str, EventMapping] = {}

    def fetch(self, projects: Sequence[Project]) -> list[CalendarEvent]:
        self.events = list(self.source.fetch_events(self.account, projects))
        self.mappings = {}
        self._publish("calendar.fetched", f"Fetched {len(self.events)} calendar events", count=len(self.events))
        return list(self.events)

    def map_categories(self) -> dict[str, EventMapping]:
        if not self.events:
            return {}
        result = self.assistant.map_events_to_para(self.events)
        self.mappings = {mapping.event_id: mapping for mapping in result}
        self._publish("calendar.mapped", f"Mapped {len(self.mappings)} calendar events", count=len(self.mappings))
        return dict(self.mappings)

    def category_for(self, event: CalendarEvent) -> ParaCategory:
        mapping = self.mappings.get(event.id)
        return mapping.category if mapping is not None else ParaCategory.AREAS

    def clear(self) -> None:
        self.events = []
        self.mappings = {}

    def import_all(self, engine: SyncEngine) -> int:
        date = self._today()
        tasks = [event_to_task(event, self.category_for(event), date) for event in self.events]
        count = engine.import_tasks(tasks)
        self.clear()
        return count

    def _publish(self, event_type: str, message: str, **metadata: object) -> None:
        if self.bus is None:
            return
        self.bus.publish(event_type, message, source="calendar", metadata=dict(metadata))
