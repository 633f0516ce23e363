from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tomllib


INFERENCE_PROVIDER_CHOICES = ("auto", "gemini", "claude", "codex", "none")
CALENDAR_SOURCE_CHOICES = ("inference", "file")


def _as_float(value, *, default: float) -> float:
    try:
        return float(value)
    except Exception:  # noqa: BLE001
        return float(default)


def _as_int(value, *, default: int) -> int:
    try:
        return int(value)
    except Exception:  # noqa: BLE001
        return int(default)


def _as_bool(value, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "y", "on"}:
            return True
        if lowered in {"0", "false", "no", "n", "off"}:
            return False
    return bool(default)


def _as_choice(value, *, choices: tuple[str, ...], default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in choices:
        return value.strip().lower()
    return default


def _table(data: dict, key: str) -> dict:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str = "PARA Nexus"


@dataclass(frozen=True)
class InferenceConfig:
    provider: str = "auto"
    timeout_s: float = 45.0


@dataclass(frozen=True)
class CalendarConfig:
    account: str = ""
    source: str = "inference"
    events_file: str = ""


@dataclass(frozen=True)
class GateConfig:
    enabled: bool = True
    min_length: int = 4


@dataclass(frozen=True)
class DailyConfig:
    week_days: int = 7


@dataclass(frozen=True)
class NexusConfig:
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    gate: GateConfig = field(default_factory=GateConfig)
    daily: DailyConfig = field(default_factory=DailyConfig)


def load_config(path: Path) -> tuple[NexusConfig, str]:
    """Load `paranexus.toml`.

    Returns (config, warning). Warning is empty on success; any failure yields defaults.
    """

    if not path.exists():
        return NexusConfig(), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return NexusConfig(), f"paranexus.toml parse failed: {exc}"

    workspace = _table(data, "workspace")
    inference = _table(data, "inference")
    calendar = _table(data, "calendar")
    gate = _table(data, "gate")
    daily = _table(data, "daily")

    cfg = NexusConfig(
        workspace=WorkspaceConfig(
            name=" ".join(str(workspace.get("name") or WorkspaceConfig.name).split()),
        ),
        inference=InferenceConfig(
            provider=_as_choice(inference.get("provider"), choices=INFERENCE_PROVIDER_CHOICES, default=InferenceConfig.provider),
            timeout_s=max(5.0, _as_float(inference.get("timeout_s"), default=InferenceConfig.timeout_s)),
        ),
        calendar=CalendarConfig(
            account=str(calendar.get("account") or "").strip(),
            source=_as_choice(calendar.get("source"), choices=CALENDAR_SOURCE_CHOICES, default=CalendarConfig.source),
            events_file=str(calendar.get("events_file") or "").strip(),
        ),
        gate=GateConfig(
            enabled=_as_bool(gate.get("enabled"), default=GateConfig.enabled),
            min_length=max(1, _as_int(gate.get("min_length"), default=GateConfig.min_length)),
        ),
        daily=DailyConfig(
            week_days=min(31, max(1, _as_int(daily.get("week_days"), default=DailyConfig.week_days))),
        ),
    )
    return cfg, ""


def explain_config(config: NexusConfig, *, path: Path | None = None) -> str:
    location = str(path) if path is not None else "paranexus.toml"
    lines = [
        f"paranexus.toml guide ({location})",
        "",
        "[workspace]",
        f"- name: label shown in the status bar (current: {config.workspace.name})",
        "",
        "[inference]",
        f"- provider: auto|gemini|claude|codex|none (current: {config.inference.provider})",
        f"- timeout_s: per-prompt timeout in seconds (current: {config.inference.timeout_s:g})",
        "- env PARANEXUS_INFERENCE_PROVIDER overrides provider.",
        "",
        "[calendar]",
        f"- account: calendar account identifier (current: {config.calendar.account or '(unset)'})",
        f"- source: inference|file (current: {config.calendar.source})",
        f"- events_file: JSON event list used when source=file (current: {config.calendar.events_file or '(unset)'})",
        "",
        "[gate]",
        f"- enabled: ask for the local passphrase before opening the app (current: {'true' if config.gate.enabled else 'false'})",
        f"- min_length: minimum passphrase length (current: {config.gate.min_length})",
        "",
        "[daily]",
        f"- week_days: days shown in the week strip (current: {config.daily.week_days})",
    ]
    return "\n".join(lines)
