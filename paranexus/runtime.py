from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .assistant import Assistant
from .calendar import CalendarImport, CalendarSource, InferenceCalendarSource, JsonFileCalendarSource
from .commands import CommandRunner
from .config import NexusConfig, load_config
from .events import EventBus
from .gate import PassphraseGate
from .inference import InferenceRuntime, build_infer, discover_inference_runtime
from .paths import RuntimePaths, ensure_runtime_dirs, runtime_paths
from .storage import JsonDirectoryStore
from .store import EntityStore
from .sync import SyncEngine


@dataclass
class NexusRuntime:
    paths: RuntimePaths
    config: NexusConfig
    config_warning: str
    bus: EventBus
    kv: JsonDirectoryStore
    store: EntityStore
    engine: SyncEngine
    inference: InferenceRuntime
    assistant: Assistant
    calendar: CalendarImport
    runner: CommandRunner
    gate: PassphraseGate


def calendar_source_for(config: NexusConfig, paths: RuntimePaths, assistant: Assistant) -> CalendarSource:
    if config.calendar.source == "file" and config.calendar.events_file:
        events_file = Path(config.calendar.events_file).expanduser()
        if not events_file.is_absolute():
            events_file = paths.workspace / events_file
        return JsonFileCalendarSource(events_file)
    return InferenceCalendarSource(assistant)


def open_runtime(workspace: Path | None = None) -> NexusRuntime:
    """Wire paths, config, persistence, inference and the command layer together."""

    paths = ensure_runtime_dirs(runtime_paths(workspace))
    config, warning = load_config(paths.config_toml)
    bus = EventBus(paths.events_log)
    if warning:
        bus.publish("config.warning", warning, severity="warn", source="config")

    kv = JsonDirectoryStore(paths.state_dir)
    store = EntityStore.open(kv)
    engine = SyncEngine(store, bus=bus)

    inference = discover_inference_runtime(config.inference.provider)
    assistant = Assistant(build_infer(inference), bus=bus, timeout_s=config.inference.timeout_s)
    calendar = CalendarImport(
        calendar_source_for(config, paths, assistant),
        assistant,
        account=config.calendar.account or config.workspace.name,
        bus=bus,
    )
    runner = CommandRunner(engine, assistant, calendar, week_days=config.daily.week_days)
    gate = PassphraseGate(kv, min_length=config.gate.min_length)
    return NexusRuntime(
        paths=paths,
        config=config,
        config_warning=warning,
        bus=bus,
        kv=kv,
        store=store,
        engine=engine,
        inference=inference,
        assistant=assistant,
        calendar=calendar,
        runner=runner,
        gate=gate,
    )
