"""Sync engine: keeps the Daily task list and the project collection consistent.

Invariants maintained here:

- every project item with a deadline has exactly one mirrored task
  (`project_item_id == item.id`) dated on the deadline and sharing its
  completion flag; clearing the deadline removes the mirror;
- a project whose items are all complete (and that has at least one item)
  is replaced by a single archive task in the same commit;
- deleting a project removes every task that points at it.

Each public operation reads one `AppState` snapshot, computes the next task
and project tuples, and commits them together. Unknown ids are no-ops.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import replace
import re

from .dates import today_key
from .events import EventBus
from .models import (
    LinkMetadata,
    ParaCategory,
    Project,
    ProjectItem,
    ProjectStatus,
    ProjectTerm,
    Task,
    new_id,
)
from .store import AppState, EntityStore


MIRROR_NOTE = "Synced from project"
MIRROR_CATEGORY = ParaCategory.AREAS
ARCHIVE_TITLE_PREFIX = "[Archived Project]"
SHELL_PROJECT_DESCRIPTION = "Created automatically from Daily Projects."

TaskList = tuple[Task, ...]
ProjectList = tuple[Project, ...]


def mirror_title(project_title: str, item_title: str) -> str:
    return f"[{project_title}] {item_title}"


def shell_slug(title: str) -> str:
    return re.sub(r"\s+", "-", title.lower())


def mirror_item(tasks: TaskList, project_id: str, project_title: str, item: ProjectItem) -> TaskList:
    """Return `tasks` with the mirror for `item` created, refreshed, or removed."""

    existing = next((task for task in tasks if task.project_item_id == item.id), None)
    if not item.deadline:
        if existing is None:
            return tasks
        return tuple(task for task in tasks if task.project_item_id != item.id)

    mirrored = Task(
        id=existing.id if existing is not None else new_id(),
        title=mirror_title(project_title, item.title),
        completed=item.completed,
        category=MIRROR_CATEGORY,
        date=item.deadline,
        notes=MIRROR_NOTE,
        project_id=project_id,
        project_item_id=item.id,
    )
    if existing is None:
        return (mirrored, *tasks)

    out: list[Task] = []
    placed = False
    for task in tasks:
        if task.project_item_id != item.id:
            out.append(task)
        elif not placed:
            out.append(mirrored)
            placed = True
    return tuple(out)


def build_archive_task(project: Project, date: str) -> Task:
    return Task(
        id=new_id(),
        title=f"{ARCHIVE_TITLE_PREFIX} {project.title}",
        completed=True,
        category=ParaCategory.ARCHIVES,
        date=date,
        notes=project.description,
        project_id=project.id,
        archived_items=tuple(project.items),
    )


class SyncEngine:
    def __init__(
        self,
        store: EntityStore,
        *,
        bus: EventBus | None = None,
        today: Callable[[], str] = today_key,
    ) -> None:
        self.store = store
        self.bus = bus
        self._today = today

    # -- project item mirroring -------------------------------------------

    def sync_project_item_to_daily(self, project_id: str, project_title: str, item: ProjectItem) -> None:
        current = self.store.tasks
        tasks = mirror_item(current, project_id, project_title, item)
        if tasks == current:
            return
        self.store.commit(tasks=tasks)
        if item.deadline:
            self._publish("task.mirrored", f"Mirrored item {item.id} onto {item.deadline}", project_id=project_id, item_id=item.id)
        else:
            self._publish("task.mirror_removed", f"Removed mirror for item {item.id}", project_id=project_id, item_id=item.id)

    # -- archival ---------------------------------------------------------

    def check_and_archive_project(self, project: Project) -> bool:
        if not project.is_fully_complete:
            return False
        state = self.store.state
        if state.find_project(project.id) is None:
            return False
        tasks, projects = self._archive(state.tasks, state.projects, project)
        self.store.commit(tasks=tasks, projects=projects)
        self._publish_archived(project)
        return True

    # -- update orchestration ---------------------------------------------

    def handle_update_project(self, updated: Project) -> bool:
        """Replace a project wholesale and re-validate every mirror. Returns True when archived.

        Archival is tried first; an archiving update leaves existing mirrors as they are.
        """

        state = self.store.state
        if state.find_project(updated.id) is None:
            return False

        if updated.is_fully_complete:
            tasks, projects = self._archive(state.tasks, state.projects, updated)
            self.store.commit(tasks=tasks, projects=projects)
            self._publish_archived(updated)
            return True

        live_ids = {item.id for item in updated.items}
        tasks = tuple(
            task
            for task in state.tasks
            if not (task.project_id == updated.id and task.project_item_id and task.project_item_id not in live_ids)
        )
        for item in updated.items:
            tasks = mirror_item(tasks, updated.id, updated.title, item)

        projects = _replace_project(state.projects, updated)
        self.store.commit(tasks=tasks, projects=projects)
        self._publish("project.updated", f"Project updated: {updated.title}", project_id=updated.id)
        return False

    def handle_update_project_item(self, project_id: str, item: ProjectItem) -> bool:
        """Apply one item edit; completion check and archival happen in the same commit."""

        state = self.store.state
        project = state.find_project(project_id)
        if project is None or project.find_item(item.id) is None:
            return False
        tasks, projects, archived = self._apply_item_update(state.tasks, state.projects, project, item)
        self.store.commit(tasks=tasks, projects=projects)
        if archived:
            self._publish_archived(project)
        else:
            self._publish("project.item_updated", f"Item updated: {item.title}", project_id=project_id, item_id=item.id)
        return archived

    def handle_add_project_item(self, project_id: str, item: ProjectItem) -> bool:
        state = self.store.state
        project = state.find_project(project_id)
        if project is None or project.find_item(item.id) is not None:
            return False
        updated = replace(project, items=(*project.items, item))
        tasks = mirror_item(state.tasks, project.id, project.title, item)
        if updated.is_fully_complete:
            tasks, projects = self._archive(tasks, state.projects, updated)
            self.store.commit(tasks=tasks, projects=projects)
            self._publish_archived(updated)
            return True
        self.store.commit(tasks=tasks, projects=_replace_project(state.projects, updated))
        self._publish("project.item_added", f"Item added: {item.title}", project_id=project_id, item_id=item.id)
        return True

    def handle_remove_project_item(self, project_id: str, item_id: str) -> bool:
        state = self.store.state
        project = state.find_project(project_id)
        if project is None or project.find_item(item_id) is None:
            return False
        updated = replace(project, items=tuple(item for item in project.items if item.id != item_id))
        tasks = tuple(
            task for task in state.tasks if not (task.project_id == project_id and task.project_item_id == item_id)
        )
        if updated.is_fully_complete:
            tasks, projects = self._archive(tasks, state.projects, updated)
            self.store.commit(tasks=tasks, projects=projects)
            self._publish_archived(updated)
            return True
        self.store.commit(tasks=tasks, projects=_replace_project(state.projects, updated))
        self._publish("project.item_removed", f"Item removed: {item_id}", project_id=project_id, item_id=item_id)
        return True

    def handle_delete_project(self, project_id: str) -> bool:
        state = self.store.state
        project = state.find_project(project_id)
        if project is None:
            return False
        tasks = tuple(task for task in state.tasks if task.project_id != project_id)
        projects = tuple(p for p in state.projects if p.id != project_id)
        removed = len(state.tasks) - len(tasks)
        self.store.commit(tasks=tasks, projects=projects)
        self._publish(
            "project.deleted",
            f"Project deleted: {project.title} ({removed} linked tasks removed)",
            project_id=project_id,
            removed_tasks=removed,
        )
        return True

    # -- creation ---------------------------------------------------------

    def add_new_task(
        self,
        title: str,
        category: ParaCategory,
        date: str,
        metadata: LinkMetadata | None = None,
    ) -> Task | None:
        clean_title = title.strip()
        if not clean_title:
            return None
        state = self.store.state
        task = Task(
            id=new_id(),
            title=clean_title,
            completed=False,
            category=category,
            date=date,
            link_metadata=metadata,
        )
        projects = state.projects
        shell: Project | None = None
        if category is ParaCategory.PROJECTS and find_project_by_title(projects, clean_title) is None:
            # Linked to the task by title text only; renaming either side breaks the association.
            shell = Project(
                id=new_id(),
                title=clean_title,
                description=SHELL_PROJECT_DESCRIPTION,
                status=ProjectStatus.IN_PROGRESS,
                term=ProjectTerm.MID,
                deadline=None,
                items=(),
                slug=(metadata.slug if metadata and metadata.slug else shell_slug(clean_title)),
            )
            projects = (shell, *projects)
        self.store.commit(tasks=(task, *state.tasks), projects=projects)
        self._publish("task.created", f"Task created: {clean_title}", task_id=task.id, category=category.value, date=date)
        if shell is not None:
            self._publish("project.created", f"Shell project created: {clean_title}", project_id=shell.id)
        return task

    def create_project(
        self,
        title: str,
        *,
        description: str = "",
        term: ProjectTerm = ProjectTerm.MID,
        deadline: str | None = None,
        initial_items: Iterable[str] = (),
        slug: str | None = None,
    ) -> Project | None:
        clean_title = title.strip()
        if not clean_title:
            return None
        items = tuple(
            ProjectItem(id=new_id(), title=raw.strip(), completed=False)
            for raw in initial_items
            if raw.strip()
        )
        project = Project(
            id=new_id(),
            title=clean_title,
            description=description.strip(),
            status=ProjectStatus.IN_PROGRESS,
            term=term,
            deadline=deadline or None,
            items=items,
            slug=slug or shell_slug(clean_title),
        )
        state = self.store.state
        self.store.commit(projects=(project, *state.projects))
        self._publish("project.created", f"Project created: {clean_title}", project_id=project.id, items=len(items))
        return project

    def add_breakdown_steps(self, project_id: str, steps: Sequence[str]) -> list[ProjectItem]:
        state = self.store.state
        project = state.find_project(project_id)
        if project is None:
            return []
        deadline = project.deadline or self._today()
        added = [
            ProjectItem(id=new_id(), title=step.strip(), completed=False, deadline=deadline)
            for step in steps
            if step.strip()
        ]
        if not added:
            return []
        updated = replace(project, items=(*project.items, *added))
        tasks = state.tasks
        for item in added:
            tasks = mirror_item(tasks, project.id, project.title, item)
        self.store.commit(tasks=tasks, projects=_replace_project(state.projects, updated))
        self._publish("project.breakdown", f"Added {len(added)} steps to {project.title}", project_id=project_id)
        return added

    # -- daily / overdue task mutations -----------------------------------

    def update_task_date(self, task_id: str, date: str) -> bool:
        state = self.store.state
        task = state.find_task(task_id)
        if task is None:
            return False
        tasks, projects = self._retarget(state.tasks, state.projects, task, date)
        self.store.commit(tasks=tasks, projects=projects)
        self._publish("task.rescheduled", f"Task moved to {date}: {task.title}", task_id=task_id, date=date)
        return True

    def move_to_today(self, task_id: str) -> bool:
        return self.update_task_date(task_id, self._today())

    def recover_overdue(self) -> int:
        today = self._today()
        state = self.store.state
        overdue = [task for task in state.tasks if not task.completed and task.date < today]
        if not overdue:
            return 0
        tasks, projects = state.tasks, state.projects
        for stale in overdue:
            current = next((task for task in tasks if task.id == stale.id), None)
            if current is None:
                continue
            tasks, projects = self._retarget(tasks, projects, current, today)
        self.store.commit(tasks=tasks, projects=projects)
        self._publish("task.recovered", f"Moved {len(overdue)} overdue tasks to {today}", count=len(overdue))
        return len(overdue)

    def toggle_task(self, task_id: str) -> bool:
        state = self.store.state
        task = state.find_task(task_id)
        if task is None or not task.toggleable:
            return False
        source = _source_of(state, task)
        if source is not None:
            project, item = source
            tasks, projects, archived = self._apply_item_update(
                state.tasks, state.projects, project, replace(item, completed=not item.completed)
            )
            self.store.commit(tasks=tasks, projects=projects)
            if archived:
                self._publish_archived(project)
            else:
                self._publish("task.toggled", f"Toggled mirrored task: {task.title}", task_id=task_id, item_id=item.id)
            return True
        flipped = replace(task, completed=not task.completed)
        self.store.commit(tasks=_replace_task(state.tasks, flipped))
        self._publish("task.toggled", f"Toggled task: {task.title}", task_id=task_id, completed=flipped.completed)
        return True

    def delete_task(self, task_id: str) -> bool:
        state = self.store.state
        task = state.find_task(task_id)
        if task is None:
            return False
        source = _source_of(state, task)
        if source is not None:
            # A mirror cannot exist without a deadline, so dropping it means clearing the deadline.
            project, item = source
            tasks, projects, _archived = self._apply_item_update(
                state.tasks, state.projects, project, replace(item, deadline=None)
            )
            self.store.commit(tasks=tasks, projects=projects)
        else:
            self.store.commit(tasks=tuple(t for t in state.tasks if t.id != task_id))
        self._publish("task.deleted", f"Task deleted: {task.title}", task_id=task_id)
        return True

    def import_tasks(self, imported: Sequence[Task]) -> int:
        if not imported:
            return 0
        state = self.store.state
        self.store.commit(tasks=(*imported, *state.tasks))
        self._publish("task.imported", f"Imported {len(imported)} tasks", count=len(imported))
        return len(imported)

    def set_pinned(self, task_id: str, pinned: bool) -> bool:
        state = self.store.state
        task = state.find_task(task_id)
        if task is None or task.link_metadata is None:
            return False
        updated = replace(task, link_metadata=replace(task.link_metadata, is_pinned=bool(pinned)))
        self.store.commit(tasks=_replace_task(state.tasks, updated))
        self._publish("task.pinned", f"{'Pinned' if pinned else 'Unpinned'} link: {task.title}", task_id=task_id)
        return True

    # -- internals --------------------------------------------------------

    def _apply_item_update(
        self,
        tasks: TaskList,
        projects: ProjectList,
        project: Project,
        item: ProjectItem,
    ) -> tuple[TaskList, ProjectList, bool]:
        updated = replace(project, items=tuple(item if existing.id == item.id else existing for existing in project.items))
        tasks = mirror_item(tasks, project.id, project.title, item)
        if updated.is_fully_complete:
            tasks, projects = self._archive(tasks, projects, updated)
            return tasks, projects, True
        return tasks, _replace_project(projects, updated), False

    def _archive(self, tasks: TaskList, projects: ProjectList, project: Project) -> tuple[TaskList, ProjectList]:
        archive = build_archive_task(project, self._today())
        return (archive, *tasks), tuple(p for p in projects if p.id != project.id)

    def _retarget(self, tasks: TaskList, projects: ProjectList, task: Task, date: str) -> tuple[TaskList, ProjectList]:
        source = _source_of(AppState(tasks=tasks, projects=projects), task)
        if source is None:
            return _replace_task(tasks, replace(task, date=date)), projects
        project, item = source
        moved = replace(item, deadline=date)
        updated = replace(project, items=tuple(moved if existing.id == item.id else existing for existing in project.items))
        return mirror_item(tasks, project.id, project.title, moved), _replace_project(projects, updated)

    def _publish_archived(self, project: Project) -> None:
        self._publish(
            "project.archived",
            f"Project archived: {project.title} ({project.total_count} items)",
            project_id=project.id,
            items=project.total_count,
        )

    def _publish(self, event_type: str, message: str, **metadata: object) -> None:
        if self.bus is None:
            return
        self.bus.publish(event_type, message, source="sync", metadata=dict(metadata))


def find_project_by_title(projects: Iterable[Project], title: str) -> Project | None:
    needle = title.strip().lower()
    for project in projects:
        if project.title.strip().lower() == needle:
            return project
    return None


def _source_of(state: AppState, task: Task) -> tuple[Project, ProjectItem] | None:
    if not task.project_id or not task.project_item_id:
        return None
    project = state.find_project(task.project_id)
    if project is None:
        return None
    item = project.find_item(task.project_item_id)
    if item is None:
        return None
    return project, item


def _replace_task(tasks: TaskList, updated: Task) -> TaskList:
    return tuple(updated if task.id == updated.id else task for task in tasks)


def _replace_project(projects: ProjectList, updated: Project) -> ProjectList:
    return tuple(updated if project.id == updated.id else project for project in projects)
