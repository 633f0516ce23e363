from __future__ import annotations

from collections.abc import Iterable

from paranexus.events import EventBus
from paranexus.models import ParaCategory, Project, ProjectItem, Task, new_id
from paranexus.storage import MemoryKeyValueStore
from paranexus.store import AppState, EntityStore
from paranexus.sync import SyncEngine


TODAY = "2024-06-01"


def make_item(title: str, *, deadline: str | None = None, completed: bool = False, item_id: str | None = None) -> ProjectItem:
    return ProjectItem(id=item_id or new_id(), title=title, completed=completed, deadline=deadline)


def make_project(title: str, items: Iterable[ProjectItem] = (), **kwargs) -> Project:
    return Project(id=kwargs.pop("id", None) or new_id(), title=title, items=tuple(items), **kwargs)


def make_task(title: str, *, category: ParaCategory = ParaCategory.AREAS, date: str = TODAY, **kwargs) -> Task:
    return Task(
        id=kwargs.pop("id", None) or new_id(),
        title=title,
        completed=kwargs.pop("completed", False),
        category=category,
        date=date,
        **kwargs,
    )


def make_engine(
    tasks: Iterable[Task] = (),
    projects: Iterable[Project] = (),
    *,
    today: str = TODAY,
) -> tuple[SyncEngine, EntityStore, MemoryKeyValueStore, EventBus]:
    kv = MemoryKeyValueStore()
    store = EntityStore(kv, AppState(tasks=tuple(tasks), projects=tuple(projects)))
    bus = EventBus()
    engine = SyncEngine(store, bus=bus, today=lambda: today)
    return engine, store, kv, bus


def mirrors_of(store: EntityStore, item_id: str) -> list[Task]:
    return [task for task in store.tasks if task.project_item_id == item_id]
