from __future__ import annotations

import contextlib
import os
import re
import tempfile
from pathlib import Path
from typing import Protocol


TASKS_KEY = "para_tasks"
PROJECTS_KEY = "para_projects"
PASSPHRASE_KEY = "nexus_master_password"

_KEY_SAFE = re.compile(r"[^A-Za-z0-9_.-]+")


class KeyValueStore(Protocol):
    def load(self, key: str) -> str | None: ...

    def save(self, key: str, blob: str) -> bool: ...


class MemoryKeyValueStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.save_count = 0

    def load(self, key: str) -> str | None:
        return self.data.get(key)

    def save(self, key: str, blob: str) -> bool:
        self.data[key] = blob
        self.save_count += 1
        return True


class JsonDirectoryStore:
    """One `<key>.json` file per key under a state directory.

    Writes go through a temp file and `os.replace`; readers see the old blob or the new one.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def path_for(self, key: str) -> Path:
        safe = _KEY_SAFE.sub("-", key.strip()).strip("-") or "blob"
        return self.root / f"{safe}.json"

    def load(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError:
            return None

    def save(self, key: str, blob: str) -> bool:
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=".tmp", dir=str(self.root))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(blob)
            os.replace(tmp_name, path)
        except OSError:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            return False
        return True
