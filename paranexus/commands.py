from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

from .assistant import Assistant
from .calendar import CalendarImport
from .dates import parse_date_key, resolve_date_input, today_key
from .links import prepare_new_task
from .models import ParaCategory, Project, ProjectItem, ProjectTerm, Task, new_id
from .store import AppState
from .sync import SyncEngine
from .views import (
    active_projects,
    daily_board,
    format_project_line,
    format_task_line,
    overdue_groups,
    project_card,
    sorted_items,
    week_summary,
)


HELP_LINES = (
    "tasks:",
    "  add <title> [| cat=auto|projects|areas|resources|archives] [| date=DATE]",
    "  toggle <task>   date <task> <DATE>   rm <task>   pin <task>",
    "  day [DATE]",
    "projects:",
    "  project <title> [| desc=...] [| term=mid|long] [| deadline=DATE] [| items=a, b]",
    "  projects   show <project>   delproject <project>",
    "  item <project> | <title> [| due=DATE]",
    "  check <project> <n>   uncheck <project> <n>   due <project> <n> <DATE|none>   drop <project> <n>",
    "  breakdown <project>",
    "review:",
    "  overdue   recover   week [DATE]",
    "calendar:",
    "  sync   map   import",
    "DATE is YYYY-MM-DD, today, tomorrow, yesterday, +N or -N.",
    "Tasks and projects are referenced by id prefix; projects also by title. <n> is the item number from `show`.",
)


def parse_command(text: str) -> tuple[str, str]:
    value = text.strip()
    if value.lower().startswith("paranexus "):
        value = value[len("paranexus ") :].lstrip()
    if value.startswith("/"):
        value = value[1:].lstrip()
    if not value:
        return "", ""
    parts = value.split(maxsplit=1)
    cmd = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ""
    return cmd, rest


def parse_fields(spec: str) -> tuple[str, dict[str, str]]:
    """Split `title | key=value | ...` into the title and a lowercase-keyed dict."""

    parts = [part.strip() for part in spec.split("|") if part.strip()]
    if not parts:
        return "", {}
    fields: dict[str, str] = {}
    for part in parts[1:]:
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        fields[key.strip().lower()] = value.strip()
    return parts[0], fields


class CommandRunner:
    def __init__(
        self,
        engine: SyncEngine,
        assistant: Assistant,
        calendar: CalendarImport | None = None,
        today: Callable[[], str] | None = None,
        *,
        week_days: int = 7,
    ) -> None:
        self.engine = engine
        self.assistant = assistant
        self.calendar = calendar
        self._today = today or today_key
        self.week_days = week_days
        self.day: str | None = None

    @property
    def state(self) -> AppState:
        return self.engine.store.state

    @property
    def today(self) -> str:
        return self._today()

    @property
    def selected_day(self) -> str:
        return self.day or self._today()

    def handles(self, cmd: str) -> bool:
        return hasattr(self, f"_cmd_{cmd}")

    def execute(self, text: str) -> str:
        cmd, rest = parse_command(text)
        if not cmd:
            return ""
        handler = getattr(self, f"_cmd_{cmd}", None)
        if handler is None:
            return f"unknown command: {cmd} (try `help`)"
        return handler(rest.strip())

    # -- tasks -------------------------------------------------------------

    def _cmd_help(self, rest: str) -> str:
        return "\n".join(HELP_LINES)

    def _cmd_add(self, rest: str) -> str:
        title, fields = parse_fields(rest)
        if not title:
            return "usage: `add <title> [| cat=...] [| date=DATE]`"
        raw_category = fields.get("cat") or fields.get("category") or "auto"
        category: ParaCategory | None = None
        if raw_category.lower() != "auto":
            category = ParaCategory.parse(raw_category)
            if category is None:
                return f"unknown category: {raw_category}"
        date = self.selected_day
        if fields.get("date"):
            resolved = self._resolve_date(fields["date"])
            if resolved is None:
                return f"invalid date: {fields['date']}"
            date = resolved
        category, metadata = prepare_new_task(title, category, self.assistant)
        task = self.engine.add_new_task(title, category, date, metadata)
        if task is None:
            return "usage: `add <title>`"
        return f"added {task.id[:8]} to {category.value} on {date}: {task.title}"

    def _cmd_toggle(self, rest: str) -> str:
        task, error = self._resolve_task(rest)
        if task is None:
            return error
        if not task.toggleable:
            return f"{task.category.value} tasks cannot be toggled: {task.title}"
        project = self.state.find_project(task.project_id) if task.project_id else None
        if project is None:
            self.engine.toggle_task(task.id)
            return f"toggled: {task.title}"
        archived = self._archives_after(project, lambda: self.engine.toggle_task(task.id))
        reply = f"toggled: {task.title}"
        return reply + ("\nproject complete and archived" if archived else "")

    def _cmd_date(self, rest: str) -> str:
        parts = rest.split()
        if len(parts) != 2:
            return "usage: `date <task> <DATE>`"
        task, error = self._resolve_task(parts[0])
        if task is None:
            return error
        date = self._resolve_date(parts[1])
        if date is None:
            return f"invalid date: {parts[1]}"
        self.engine.update_task_date(task.id, date)
        return f"moved to {date}: {task.title}"

    def _cmd_rm(self, rest: str) -> str:
        task, error = self._resolve_task(rest)
        if task is None:
            return error
        self.engine.delete_task(task.id)
        return f"deleted: {task.title}"

    def _cmd_pin(self, rest: str) -> str:
        task, error = self._resolve_task(rest)
        if task is None:
            return error
        if task.link_metadata is None:
            return f"not a link: {task.title}"
        pinned = not task.link_metadata.is_pinned
        self.engine.set_pinned(task.id, pinned)
        return f"{'pinned' if pinned else 'unpinned'}: {task.link_metadata.display_title or task.title}"

    def _cmd_day(self, rest: str) -> str:
        if rest:
            date = self._resolve_date(rest)
            if date is None:
                return f"invalid date: {rest}"
            self.day = None if date == self._today() else date
        return self.render_day(self.selected_day)

    # -- projects ----------------------------------------------------------

    def _cmd_project(self, rest: str) -> str:
        title, fields = parse_fields(rest)
        if not title:
            return "usage: `project <title> [| desc=...] [| term=mid|long] [| deadline=DATE] [| items=a, b]`"
        deadline = None
        if fields.get("deadline"):
            deadline = self._resolve_date(fields["deadline"])
            if deadline is None:
                return f"invalid date: {fields['deadline']}"
        items = [part for part in (fields.get("items") or "").split(",") if part.strip()]
        project = self.engine.create_project(
            title,
            description=fields.get("desc") or fields.get("description") or "",
            term=ProjectTerm.parse(fields.get("term")),
            deadline=deadline,
            initial_items=items,
            slug=self.assistant.generate_slug(title),
        )
        if project is None:
            return "usage: `project <title>`"
        return f"created project {project.id[:8]}: {project.title} ({len(project.items)} items)"

    def _cmd_projects(self, rest: str) -> str:
        projects = active_projects(self.state)
        if not projects:
            return "no active projects"
        return "\n".join(format_project_line(project_card(project)) for project in projects)

    def _cmd_show(self, rest: str) -> str:
        project, error = self._resolve_project(rest)
        if project is None:
            return error
        return self.render_project(project)

    def _cmd_item(self, rest: str) -> str:
        ref, _, spec = rest.partition("|")
        title, fields = parse_fields(spec)
        if not ref.strip() or not title:
            return "usage: `item <project> | <title> [| due=DATE]`"
        project, error = self._resolve_project(ref)
        if project is None:
            return error
        deadline = None
        if fields.get("due"):
            deadline = self._resolve_date(fields["due"])
            if deadline is None:
                return f"invalid date: {fields['due']}"
        item = ProjectItem(id=new_id(), title=title, completed=False, deadline=deadline)
        self.engine.handle_add_project_item(project.id, item)
        return f"added item to {project.title}: {title}" + (f" (due {deadline})" if deadline else "")

    def _cmd_check(self, rest: str) -> str:
        return self._set_item_completed(rest, True)

    def _cmd_uncheck(self, rest: str) -> str:
        return self._set_item_completed(rest, False)

    def _cmd_due(self, rest: str) -> str:
        head, _, raw_date = rest.rpartition(" ")
        if not head.strip() or not raw_date:
            return "usage: `due <project> <n> <DATE|none>`"
        project, item, error = self._resolve_item(head)
        if project is None or item is None:
            return error
        deadline = None
        if raw_date.lower() not in {"none", "clear", "-"}:
            deadline = self._resolve_date(raw_date)
            if deadline is None:
                return f"invalid date: {raw_date}"
        self.engine.handle_update_project_item(project.id, replace(item, deadline=deadline))
        if deadline is None:
            return f"cleared deadline: {item.title}"
        return f"{item.title} due {deadline}"

    def _cmd_drop(self, rest: str) -> str:
        project, item, error = self._resolve_item(rest)
        if project is None or item is None:
            return error
        archived = self._archives_after(
            project, lambda: self.engine.handle_remove_project_item(project.id, item.id)
        )
        reply = f"removed item from {project.title}: {item.title}"
        return reply + ("\nproject complete and archived" if archived else "")

    def _cmd_breakdown(self, rest: str) -> str:
        project, error = self._resolve_project(rest)
        if project is None:
            return error
        steps = self.assistant.breakdown_project(project)
        added = self.engine.add_breakdown_steps(project.id, steps)
        if not added:
            return f"no steps added to {project.title}"
        lines = [f"added {len(added)} steps to {project.title}:"]
        lines.extend(f"- {item.title} (due {item.deadline})" for item in added)
        return "\n".join(lines)

    def _cmd_delproject(self, rest: str) -> str:
        project, error = self._resolve_project(rest)
        if project is None:
            return error
        linked = sum(1 for task in self.state.tasks if task.project_id == project.id)
        self.engine.handle_delete_project(project.id)
        return f"deleted project: {project.title} ({linked} linked tasks removed)"

    # -- review ------------------------------------------------------------

    def _cmd_overdue(self, rest: str) -> str:
        today = self._today()
        groups = overdue_groups(self.state, today)
        if groups.total == 0:
            return "nothing overdue"
        lines = [f"overdue ({groups.total})"]
        for label, tasks in (("Projects", groups.projects), ("Areas", groups.areas), ("Other", groups.others)):
            if not tasks:
                continue
            lines.append(f"{label}:")
            lines.extend(f"  {format_task_line(task, today=today)}" for task in tasks)
        return "\n".join(lines)

    def _cmd_recover(self, rest: str) -> str:
        count = self.engine.recover_overdue()
        if count == 0:
            return "nothing overdue"
        return f"moved {count} overdue tasks to {self._today()}"

    def _cmd_week(self, rest: str) -> str:
        start = self._today()
        if rest:
            resolved = self._resolve_date(rest)
            if resolved is None:
                return f"invalid date: {rest}"
            start = resolved
        lines = [f"week from {start}"]
        for summary in week_summary(self.state, start, days=self.week_days):
            lines.append(
                f"{summary.date}  projects={summary.project_count} areas={summary.area_count} total={summary.total}"
            )
        return "\n".join(lines)

    # -- calendar ----------------------------------------------------------

    def _cmd_sync(self, rest: str) -> str:
        if self.calendar is None:
            return "calendar import is not configured"
        events = self.calendar.fetch(active_projects(self.state))
        if not events:
            return "no calendar events found"
        lines = [f"fetched {len(events)} events (run `map` to categorize, `import` to add them):"]
        lines.extend(f"- {event.id}: {event.start} - {event.end} {event.summary}" for event in events)
        return "\n".join(lines)

    def _cmd_map(self, rest: str) -> str:
        if self.calendar is None:
            return "calendar import is not configured"
        if not self.calendar.events:
            return "no fetched events (run `sync` first)"
        mappings = self.calendar.map_categories()
        lines = ["mapped events:"]
        for event in self.calendar.events:
            mapping = mappings.get(event.id)
            if mapping is None:
                lines.append(f"- {event.summary}: Areas")
            else:
                lines.append(f"- {event.summary}: {mapping.category.value} ({mapping.reason})")
        return "\n".join(lines)

    def _cmd_import(self, rest: str) -> str:
        if self.calendar is None:
            return "calendar import is not configured"
        if not self.calendar.events:
            return "no fetched events (run `sync` first)"
        count = self.calendar.import_all(self.engine)
        return f"imported {count} events into {self._today()}"

    # -- rendering ---------------------------------------------------------

    def render_day(self, date: str) -> str:
        today = self._today()
        board = daily_board(self.state, date)
        lines = [f"day {date}" + (" (today)" if date == today else "")]
        for column in board.columns:
            lines.append(f"{column.category.value} ({column.count})")
            for card in column.projects:
                lines.append(f"  * {format_project_line(card)}")
            for task in column.tasks:
                lines.append(f"  {format_task_line(task, today=today)}")
        return "\n".join(lines)

    def render_project(self, project: Project) -> str:
        card = project_card(project)
        lines = [format_project_line(card)]
        if project.description:
            lines.append(project.description)
        if not project.items:
            lines.append("(no items)")
        for index, item in enumerate(sorted_items(project), start=1):
            mark = "x" if item.completed else " "
            due = f" due {item.deadline}" if item.deadline else ""
            lines.append(f"{index}. [{mark}] {item.title}{due}")
        return "\n".join(lines)

    # -- resolution --------------------------------------------------------

    def _resolve_date(self, value: str) -> str | None:
        return resolve_date_input(value, today=parse_date_key(self._today()))

    def _resolve_task(self, ref: str) -> tuple[Task | None, str]:
        needle = ref.strip()
        if not needle:
            return None, "usage: expected a task id"
        matches = [task for task in self.state.tasks if task.id.startswith(needle)]
        if not matches:
            return None, f"unknown task id: {needle}"
        if len(matches) > 1:
            return None, f"ambiguous task id: {needle} ({len(matches)} matches)"
        return matches[0], ""

    def _resolve_project(self, ref: str) -> tuple[Project | None, str]:
        needle = ref.strip()
        if not needle:
            return None, "usage: expected a project id or title"
        lowered = needle.lower()
        by_title = [p for p in self.state.projects if p.title.strip().lower() == lowered]
        if by_title:
            return by_title[0], ""
        matches = [p for p in self.state.projects if p.id.startswith(needle)]
        if not matches:
            return None, f"unknown project: {needle}"
        if len(matches) > 1:
            return None, f"ambiguous project id: {needle} ({len(matches)} matches)"
        return matches[0], ""

    def _resolve_item(self, spec: str) -> tuple[Project | None, ProjectItem | None, str]:
        ref, _, raw_index = spec.strip().rpartition(" ")
        if not ref.strip() or not raw_index.isdigit():
            return None, None, "usage: `<command> <project> <n>`"
        project, error = self._resolve_project(ref)
        if project is None:
            return None, None, error
        items = sorted_items(project)
        index = int(raw_index)
        if index < 1 or index > len(items):
            return project, None, f"{project.title} has no item {index}"
        return project, items[index - 1], ""

    def _set_item_completed(self, spec: str, completed: bool) -> str:
        project, item, error = self._resolve_item(spec)
        if project is None or item is None:
            return error
        archived = self._archives_after(
            project,
            lambda: self.engine.handle_update_project_item(project.id, replace(item, completed=completed)),
        )
        reply = f"{'checked' if completed else 'unchecked'}: {item.title}"
        return reply + ("\nproject complete and archived" if archived else "")

    def _archives_after(self, project: Project, action: Callable[[], object]) -> bool:
        action()
        return self.state.find_project(project.id) is None
