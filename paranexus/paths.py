from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


CONFIG_FILENAME = "paranexus.toml"
RUNTIME_DIRNAME = ".paranexus"


def find_workspace_root(start: Path | None = None) -> Path:
    """Walk up from `start` looking for a `paranexus.toml` sentinel.

    If none is found, the start directory itself becomes the workspace so the
    app still runs (state lands in `./.paranexus/`).
    """

    probe = (start or Path.cwd()).resolve()
    for candidate in [probe, *probe.parents]:
        if (candidate / CONFIG_FILENAME).exists():
            return candidate
        if (candidate / RUNTIME_DIRNAME).is_dir():
            return candidate
    return probe


@dataclass(frozen=True)
class RuntimePaths:
    workspace: Path
    config_toml: Path
    root: Path
    state_dir: Path
    logs_dir: Path
    events_log: Path
    app_log: Path


def runtime_paths(workspace: Path | None = None) -> RuntimePaths:
    base = workspace or find_workspace_root()
    root = base / RUNTIME_DIRNAME
    logs_dir = root / "logs"
    return RuntimePaths(
        workspace=base,
        config_toml=base / CONFIG_FILENAME,
        root=root,
        state_dir=root / "state",
        logs_dir=logs_dir,
        events_log=logs_dir / "events.jsonl",
        app_log=logs_dir / "app.log",
    )


def ensure_runtime_dirs(paths: RuntimePaths | None = None) -> RuntimePaths:
    paths = paths or runtime_paths()
    paths.root.mkdir(parents=True, exist_ok=True)
    paths.state_dir.mkdir(parents=True, exist_ok=True)
    paths.logs_dir.mkdir(parents=True, exist_ok=True)
    return paths
