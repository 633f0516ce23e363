from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import uuid


class ParaCategory(str, Enum):
    PROJECTS = "Projects"
    AREAS = "Areas"
    RESOURCES = "Resources"
    ARCHIVES = "Archives"

    @property
    def toggleable(self) -> bool:
        """Resources are reference material; they have no completion state to flip."""

        return self is not ParaCategory.RESOURCES

    @property
    def expandable(self) -> bool:
        """Archive records can expand to show a frozen project snapshot."""

        return self is ParaCategory.ARCHIVES

    @staticmethod
    def parse(value: object, default: "ParaCategory | None" = None) -> "ParaCategory | None":
        if isinstance(value, ParaCategory):
            return value
        if not isinstance(value, str):
            return default
        lowered = value.strip().lower()
        for category in ParaCategory:
            if category.value.lower() == lowered:
                return category
        return default


class ProjectStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"

    @staticmethod
    def parse(value: object) -> "ProjectStatus":
        if isinstance(value, str):
            lowered = value.strip().lower()
            for status in ProjectStatus:
                if status.value.lower() == lowered:
                    return status
        return ProjectStatus.IN_PROGRESS


class ProjectTerm(str, Enum):
    MID = "Mid"
    LONG = "Long"

    @staticmethod
    def parse(value: object) -> "ProjectTerm":
        if isinstance(value, str) and value.strip().lower() == "long":
            return ProjectTerm.LONG
        return ProjectTerm.MID


CATEGORY_ORDER: tuple[ParaCategory, ...] = (
    ParaCategory.PROJECTS,
    ParaCategory.AREAS,
    ParaCategory.RESOURCES,
    ParaCategory.ARCHIVES,
)


def new_id() -> str:
    return str(uuid.uuid4())


def _opt_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


@dataclass(frozen=True)
class ProjectItem:
    id: str
    title: str
    completed: bool = False
    deadline: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"id": self.id, "title": self.title, "completed": bool(self.completed)}
        if self.deadline:
            data["deadline"] = self.deadline
        return data

    @staticmethod
    def from_mapping(value: object) -> "ProjectItem | None":
        if not isinstance(value, dict):
            return None
        item_id = _opt_str(value.get("id"))
        if item_id is None:
            return None
        return ProjectItem(
            id=item_id,
            title=str(value.get("title") or ""),
            completed=bool(value.get("completed")),
            deadline=_opt_str(value.get("deadline")),
        )


@dataclass(frozen=True)
class LinkMetadata:
    display_title: str | None = None
    domain: str | None = None
    favicon: str | None = None
    slug: str | None = None
    is_pinned: bool = False

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {}
        if self.display_title:
            data["displayTitle"] = self.display_title
        if self.domain:
            data["domain"] = self.domain
        if self.favicon:
            data["favicon"] = self.favicon
        if self.slug:
            data["slug"] = self.slug
        data["isPinned"] = bool(self.is_pinned)
        return data

    @staticmethod
    def from_mapping(value: object) -> "LinkMetadata | None":
        if not isinstance(value, dict):
            return None
        return LinkMetadata(
            display_title=_opt_str(value.get("displayTitle")),
            domain=_opt_str(value.get("domain")),
            favicon=_opt_str(value.get("favicon")),
            slug=_opt_str(value.get("slug")),
            is_pinned=bool(value.get("isPinned")),
        )


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    completed: bool
    category: ParaCategory
    date: str
    notes: str | None = None
    project_id: str | None = None
    project_item_id: str | None = None
    archived_items: tuple[ProjectItem, ...] | None = None
    link_metadata: LinkMetadata | None = None

    @property
    def is_mirrored(self) -> bool:
        return self.project_item_id is not None

    @property
    def is_archive_record(self) -> bool:
        return self.category is ParaCategory.ARCHIVES and self.archived_items is not None

    @property
    def toggleable(self) -> bool:
        if not self.category.toggleable:
            return False
        return not (self.category.expandable and self.archived_items is not None)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "completed": bool(self.completed),
            "category": self.category.value,
            "date": self.date,
        }
        if self.notes is not None:
            data["notes"] = self.notes
        if self.project_id:
            data["projectId"] = self.project_id
        if self.project_item_id:
            data["projectItemId"] = self.project_item_id
        if self.archived_items is not None:
            data["archivedItems"] = [item.to_dict() for item in self.archived_items]
        if self.link_metadata is not None:
            data["linkMetadata"] = self.link_metadata.to_dict()
        return data

    @staticmethod
    def from_mapping(value: object) -> "Task | None":
        if not isinstance(value, dict):
            return None
        task_id = _opt_str(value.get("id"))
        date_value = _opt_str(value.get("date"))
        if task_id is None or date_value is None:
            return None
        category = ParaCategory.parse(value.get("category"))
        if category is None:
            category = ParaCategory.AREAS

        archived_items: tuple[ProjectItem, ...] | None = None
        raw_archived = value.get("archivedItems")
        if isinstance(raw_archived, list):
            parsed = [ProjectItem.from_mapping(item) for item in raw_archived]
            archived_items = tuple(item for item in parsed if item is not None)

        notes = value.get("notes")
        return Task(
            id=task_id,
            title=str(value.get("title") or ""),
            completed=bool(value.get("completed")),
            category=category,
            date=date_value,
            notes=notes if isinstance(notes, str) else None,
            project_id=_opt_str(value.get("projectId")),
            project_item_id=_opt_str(value.get("projectItemId")),
            archived_items=archived_items,
            link_metadata=LinkMetadata.from_mapping(value.get("linkMetadata")),
        )


@dataclass(frozen=True)
class Project:
    id: str
    title: str
    description: str = ""
    status: ProjectStatus = ProjectStatus.IN_PROGRESS
    term: ProjectTerm = ProjectTerm.MID
    deadline: str | None = None
    items: tuple[ProjectItem, ...] = field(default_factory=tuple)
    slug: str | None = None

    @property
    def total_count(self) -> int:
        return len(self.items)

    @property
    def completed_count(self) -> int:
        return sum(1 for item in self.items if item.completed)

    @property
    def is_fully_complete(self) -> bool:
        # Empty projects never count as complete, even though 0 == 0.
        return self.total_count > 0 and self.completed_count == self.total_count

    def find_item(self, item_id: str) -> ProjectItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "term": self.term.value,
            "deadline": self.deadline or "",
            "items": [item.to_dict() for item in self.items],
        }
        if self.slug:
            data["slug"] = self.slug
        return data

    @staticmethod
    def from_mapping(value: object) -> "Project | None":
        if not isinstance(value, dict):
            return None
        project_id = _opt_str(value.get("id"))
        if project_id is None:
            return None
        items: list[ProjectItem] = []
        raw_items = value.get("items")
        if isinstance(raw_items, list):
            for raw in raw_items:
                item = ProjectItem.from_mapping(raw)
                if item is not None:
                    items.append(item)
        return Project(
            id=project_id,
            title=str(value.get("title") or ""),
            description=str(value.get("description") or ""),
            status=ProjectStatus.parse(value.get("status")),
            term=ProjectTerm.parse(value.get("term")),
            deadline=_opt_str(value.get("deadline")),
            items=tuple(items),
            slug=_opt_str(value.get("slug")),
        )


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    summary: str
    start: str
    end: str
    location: str | None = None

    @staticmethod
    def from_mapping(value: object, *, fallback_id: str) -> "CalendarEvent | None":
        if not isinstance(value, dict):
            return None
        summary = " ".join(str(value.get("summary") or value.get("title") or "").split()).strip()
        if not summary:
            return None
        return CalendarEvent(
            id=_opt_str(value.get("id")) or fallback_id,
            summary=summary,
            start=str(value.get("start") or ""),
            end=str(value.get("end") or ""),
            location=_opt_str(value.get("location")),
        )


@dataclass(frozen=True)
class EventMapping:
    event_id: str
    category: ParaCategory
    reason: str
