from __future__ import annotations

from dataclasses import dataclass
import math

from .dates import next_day_keys, parse_date_key
from .models import CATEGORY_ORDER, ParaCategory, Project, ProjectItem, ProjectStatus, Task
from .store import AppState
from .sync import find_project_by_title as _find_project_by_title


@dataclass(frozen=True)
class ProjectCard:
    project: Project
    completed: int
    total: int
    progress: int


@dataclass(frozen=True)
class DailyColumn:
    category: ParaCategory
    tasks: list[Task]
    projects: list[ProjectCard]

    @property
    def count(self) -> int:
        # The Projects column counts active projects rather than that day's tasks.
        if self.category is ParaCategory.PROJECTS:
            return len(self.projects)
        return len(self.tasks)


@dataclass(frozen=True)
class DailyBoard:
    date: str
    columns: list[DailyColumn]

    def column(self, category: ParaCategory) -> DailyColumn:
        for column in self.columns:
            if column.category is category:
                return column
        raise KeyError(category)


@dataclass(frozen=True)
class OverdueGroups:
    projects: list[Task]
    areas: list[Task]
    others: list[Task]

    @property
    def total(self) -> int:
        return len(self.projects) + len(self.areas) + len(self.others)


@dataclass(frozen=True)
class DaySummary:
    date: str
    project_count: int
    area_count: int
    total: int


def is_project_task(task: Task) -> bool:
    return bool(task.project_id) or task.category is ParaCategory.PROJECTS


def is_area_task(task: Task) -> bool:
    return not task.project_id and task.category is ParaCategory.AREAS


def project_progress(project: Project) -> int:
    total = project.total_count
    if total == 0:
        return 0
    return int(math.floor(project.completed_count * 100 / total + 0.5))


def sorted_items(project: Project) -> list[ProjectItem]:
    dated = sorted((item for item in project.items if item.deadline), key=lambda item: item.deadline or "")
    undated = [item for item in project.items if not item.deadline]
    return [*dated, *undated]


def active_projects(state: AppState) -> list[Project]:
    return [project for project in state.projects if project.status is ProjectStatus.IN_PROGRESS]


def project_card(project: Project) -> ProjectCard:
    return ProjectCard(
        project=project,
        completed=project.completed_count,
        total=project.total_count,
        progress=project_progress(project),
    )


def tasks_for_day(state: AppState, date: str) -> list[Task]:
    return [task for task in state.tasks if task.date == date]


def daily_board(state: AppState, date: str) -> DailyBoard:
    day_tasks = tasks_for_day(state, date)
    columns: list[DailyColumn] = []
    for category in CATEGORY_ORDER:
        tasks = sorted(
            (task for task in day_tasks if task.category is category),
            key=lambda task: task.title.casefold(),
        )
        cards = [project_card(p) for p in active_projects(state)] if category is ParaCategory.PROJECTS else []
        columns.append(DailyColumn(category=category, tasks=tasks, projects=cards))
    return DailyBoard(date=date, columns=columns)


def overdue_tasks(state: AppState, today: str) -> list[Task]:
    return [task for task in state.tasks if not task.completed and task.date < today]


def overdue_groups(state: AppState, today: str) -> OverdueGroups:
    overdue = overdue_tasks(state, today)
    return OverdueGroups(
        projects=[task for task in overdue if is_project_task(task)],
        areas=[task for task in overdue if is_area_task(task)],
        others=[
            task
            for task in overdue
            if task.category not in (ParaCategory.PROJECTS, ParaCategory.AREAS)
        ],
    )


def week_summary(state: AppState, start: str, *, days: int = 7) -> list[DaySummary]:
    start_day = parse_date_key(start)
    out: list[DaySummary] = []
    for key in next_day_keys(days, start=start_day):
        day_tasks = tasks_for_day(state, key)
        out.append(
            DaySummary(
                date=key,
                project_count=sum(1 for task in day_tasks if is_project_task(task)),
                area_count=sum(1 for task in day_tasks if is_area_task(task)),
                total=len(day_tasks),
            )
        )
    return out


def pinned_links(state: AppState) -> list[Task]:
    return [task for task in state.tasks if task.link_metadata is not None and task.link_metadata.is_pinned]


def find_project_by_title(state: AppState, title: str) -> Project | None:
    return _find_project_by_title(state.projects, title)


def format_task_line(task: Task, *, today: str | None = None) -> str:
    mark = "x" if task.completed else " "
    if not task.toggleable:
        mark = "-"
    flags: list[str] = []
    if task.project_id:
        flags.append("linked")
    if today and not task.completed and task.date < today:
        flags.append(f"overdue {task.date}")
    if task.link_metadata is not None and task.link_metadata.is_pinned:
        flags.append("pinned")
    label = task.title
    if task.link_metadata is not None and task.link_metadata.display_title:
        label = f"{task.link_metadata.display_title} <{task.title}>"
    suffix = f" ({', '.join(flags)})" if flags else ""
    return f"[{mark}] {task.id[:8]} {label}{suffix}"


def format_project_line(card: ProjectCard) -> str:
    project = card.project
    deadline = f" due {project.deadline}" if project.deadline else ""
    return f"{project.id[:8]} {project.title} {card.progress}% ({card.completed}/{card.total}) {project.term.value}-term{deadline}"
