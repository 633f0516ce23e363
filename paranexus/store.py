from __future__ import annotations

from collections.abc import Callable, Iterable
import contextlib
from dataclasses import dataclass, field
import json

from .models import Project, Task
from .storage import PROJECTS_KEY, TASKS_KEY, KeyValueStore


StateListener = Callable[["AppState"], None]


@dataclass(frozen=True)
class AppState:
    tasks: tuple[Task, ...] = field(default_factory=tuple)
    projects: tuple[Project, ...] = field(default_factory=tuple)

    def find_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def find_project(self, project_id: str) -> Project | None:
        for project in self.projects:
            if project.id == project_id:
                return project
        return None

    def mirrored_task(self, item_id: str) -> Task | None:
        for task in self.tasks:
            if task.project_item_id == item_id:
                return task
        return None


def decode_tasks(blob: str | None) -> tuple[Task, ...]:
    return tuple(task for task in (Task.from_mapping(raw) for raw in _decode_list(blob)) if task is not None)


def decode_projects(blob: str | None) -> tuple[Project, ...]:
    return tuple(project for project in (Project.from_mapping(raw) for raw in _decode_list(blob)) if project is not None)


def encode_tasks(tasks: Iterable[Task]) -> str:
    return json.dumps([task.to_dict() for task in tasks], ensure_ascii=False)


def encode_projects(projects: Iterable[Project]) -> str:
    return json.dumps([project.to_dict() for project in projects], ensure_ascii=False)


def _decode_list(blob: str | None) -> list[object]:
    if not blob:
        return []
    try:
        parsed = json.loads(blob)
    except json.JSONDecodeError:
        return []
    return parsed if isinstance(parsed, list) else []


class EntityStore:
    """Single owner of the task and project collections.

    Every change replaces the whole `AppState` snapshot, writes both blobs,
    then tells listeners. Readers therefore never see a task list from one
    mutation paired with a project list from another.
    """

    def __init__(self, backend: KeyValueStore, state: AppState | None = None) -> None:
        self._backend = backend
        self._state = state or AppState()
        self._listeners: list[StateListener] = []
        self.commits = 0

    @classmethod
    def open(cls, backend: KeyValueStore) -> "EntityStore":
        state = AppState(
            tasks=decode_tasks(backend.load(TASKS_KEY)),
            projects=decode_projects(backend.load(PROJECTS_KEY)),
        )
        return cls(backend, state)

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._state.tasks

    @property
    def projects(self) -> tuple[Project, ...]:
        return self._state.projects

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    def commit(
        self,
        *,
        tasks: Iterable[Task] | None = None,
        projects: Iterable[Project] | None = None,
    ) -> AppState:
        next_state = AppState(
            tasks=tuple(tasks) if tasks is not None else self._state.tasks,
            projects=tuple(projects) if projects is not None else self._state.projects,
        )
        self._state = next_state
        self.commits += 1
        self.flush()
        for listener in list(self._listeners):
            listener(next_state)
        return next_state

    def flush(self) -> None:
        # Save failures are the backend's concern; the in-memory state stays authoritative.
        self._backend.save(TASKS_KEY, encode_tasks(self._state.tasks))
        self._backend.save(PROJECTS_KEY, encode_projects(self._state.projects))
