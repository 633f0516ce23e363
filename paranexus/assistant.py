"""Model-backed helpers for categorizing, titling and planning.

Every call goes through an optional `infer(prompt, timeout_s)` callable. When it
is missing, raises, or returns something unusable, the helper falls back to a
local heuristic and publishes an `assistant.fallback` event.
"""

from __future__ import annotations

from collections.abc import Sequence
import json
import re
from typing import Any
from urllib.parse import urlparse

from .events import EventBus
from .inference import InferFn
from .models import CalendarEvent, EventMapping, ParaCategory, Project


DEFAULT_BREAKDOWN_STEPS = (
    "Research more about the topic",
    "Define initial milestones",
    "Set a clear timeline",
    "Gather necessary resources",
    "Start initial implementation",
)
FALLBACK_MAPPING_REASON = "Defaulting to Areas"

PROJECT_KEYWORDS = (
    "launch",
    "ship",
    "release",
    "build",
    "finish",
    "deliver",
    "deadline",
    "project",
    "prepare",
    "plan",
)
RESOURCE_KEYWORDS = (
    "read",
    "article",
    "book",
    "course",
    "learn",
    "reference",
    "research",
    "tutorial",
    "notes",
    "watch",
)


def heuristic_category(text: str) -> ParaCategory:
    lowered = text.strip().lower()
    if lowered.startswith("http"):
        return ParaCategory.RESOURCES
    words = set(re.findall(r"[a-z]+", lowered))
    if any(keyword in words for keyword in PROJECT_KEYWORDS):
        return ParaCategory.PROJECTS
    if any(keyword in words for keyword in RESOURCE_KEYWORDS):
        return ParaCategory.RESOURCES
    return ParaCategory.AREAS


def category_from_output(output: str) -> ParaCategory:
    for category in (ParaCategory.PROJECTS, ParaCategory.AREAS, ParaCategory.RESOURCES):
        if category.value in output:
            return category
    return ParaCategory.ARCHIVES


def hostname_title(url: str) -> str:
    host = urlparse(url.strip()).hostname or url.strip()
    return host.replace("www.", "", 1)


def fallback_slug(text: str) -> str:
    return re.sub(r"\s+", "-", text[:10].lower())


def clean_slug(output: str) -> str:
    return re.sub(r"[^a-z0-9-]", "", output.strip().lower())


def strip_fence(output: str) -> str:
    raw = output.strip()
    if raw.startswith("```"):
        lines = raw.splitlines()
        if len(lines) >= 3 and lines[-1].strip().startswith("```"):
            raw = "\n".join(lines[1:-1]).strip()
    return raw


def parse_json_array(output: str) -> list[Any] | None:
    raw = strip_fence(output)
    if not (raw.startswith("[") and raw.endswith("]")):
        start = raw.find("[")
        end = raw.rfind("]")
        if start < 0 or end <= start:
            return None
        raw = raw[start : end + 1]
    try:
        parsed = json.loads(raw)
    except Exception:  # noqa: BLE001
        return None
    return parsed if isinstance(parsed, list) else None


def build_categorize_prompt(text: str) -> str:
    return (
        "Categorize the following task into one of the PARA categories:\n"
        "- Projects: Active efforts with a specific deadline.\n"
        "- Areas: Ongoing responsibilities (Health, Finance, Work).\n"
        "- Resources: Topics of interest or reference materials.\n"
        "- Archives: Completed or no longer active.\n"
        "\n"
        f'Task: "{text}"\n'
        "\n"
        "Return ONLY the category name.\n"
    )


def build_link_title_prompt(url: str) -> str:
    return (
        "Analyze this URL and provide a very short, clean title (max 5 words) that represents its content.\n"
        f"URL: {url}\n"
        "\n"
        'Example: "https://github.com/openai/gpt-3" -> "GitHub: OpenAI GPT-3 Repo"\n'
        "Return ONLY the title.\n"
    )


def build_slug_prompt(text: str) -> str:
    return (
        "Generate a short, lowercase, hyphenated URL slug (max 3 words) representing this input.\n"
        f"Input: {text}\n"
        "\n"
        "Examples:\n"
        '"Learning Korean Master Class" -> "ko-master"\n'
        '"https://www.notion.so/workspace/design-guide" -> "design-guide"\n'
        '"Research for Quantum Physics" -> "quantum-res"\n'
        "\n"
        "Return ONLY the slug.\n"
    )


def build_breakdown_prompt(project: Project) -> str:
    return (
        f"Act as a senior project manager. Break down the following {project.term.value}-term project "
        "into 5-7 actionable steps.\n"
        f"Project: {project.title}\n"
        f"Description: {project.description}\n"
        f"Deadline: {project.deadline or 'none'}\n"
        "\n"
        "Return ONLY a JSON array of strings.\n"
    )


def build_event_mapping_prompt(events: Sequence[CalendarEvent]) -> str:
    payload = [{"id": event.id, "title": event.summary, "location": event.location} for event in events]
    return (
        "Map these calendar events to PARA categories (Projects, Areas, Resources, Archives).\n"
        f"Events: {json.dumps(payload, ensure_ascii=False)}\n"
        "\n"
        "Return ONLY a JSON array of objects with:\n"
        "- id: matching the event id\n"
        "- category: The PARA category\n"
        "- reason: A short 1-sentence reason why.\n"
    )


def build_events_prompt(account: str, projects: Sequence[Project]) -> str:
    titles = ", ".join(project.title for project in projects) or "none"
    return (
        f"Generate 4 realistic calendar events for today for a user with the account {account}.\n"
        f"Consider their active projects: {titles}.\n"
        "\n"
        'Return ONLY a JSON array of objects with: summary, start (e.g. "09:00 AM"), '
        'end (e.g. "10:30 AM"), location (optional).\n'
    )


class Assistant:
    def __init__(self, infer: InferFn | None = None, *, bus: EventBus | None = None, timeout_s: float = 45.0) -> None:
        self.infer = infer
        self.bus = bus
        self.timeout_s = timeout_s

    @property
    def available(self) -> bool:
        return self.infer is not None

    def categorize(self, text: str) -> ParaCategory:
        output = self._ask("categorize", build_categorize_prompt(text))
        if not output:
            return heuristic_category(text)
        return category_from_output(output)

    def summarize_link(self, url: str) -> str:
        output = self._ask("summarize_link", build_link_title_prompt(url))
        title = " ".join(output.strip().strip('"').split())
        if not title:
            if output:
                self._fallback("summarize_link", "empty title")
            return hostname_title(url)
        return title

    def generate_slug(self, text: str) -> str:
        output = self._ask("generate_slug", build_slug_prompt(text))
        slug = clean_slug(output)
        if not slug:
            if output:
                self._fallback("generate_slug", "empty slug")
            return fallback_slug(text)
        return slug

    def breakdown_project(self, project: Project) -> list[str]:
        output = self._ask("breakdown_project", build_breakdown_prompt(project))
        parsed = parse_json_array(output) if output else None
        steps = [" ".join(str(step).split()) for step in parsed or [] if isinstance(step, str) and step.strip()]
        if not steps:
            if output:
                self._fallback("breakdown_project", "unparseable step list")
            return list(DEFAULT_BREAKDOWN_STEPS)
        return steps

    def map_events_to_para(self, events: Sequence[CalendarEvent]) -> list[EventMapping]:
        if not events:
            return []
        output = self._ask("map_events_to_para", build_event_mapping_prompt(events))
        parsed = parse_json_array(output) if output else None
        mappings: list[EventMapping] = []
        for raw in parsed or []:
            if not isinstance(raw, dict):
                continue
            event_id = str(raw.get("id") or "").strip()
            category = ParaCategory.parse(raw.get("category"))
            if not event_id or category is None:
                continue
            mappings.append(
                EventMapping(
                    event_id=event_id,
                    category=category,
                    reason=" ".join(str(raw.get("reason") or "").split()),
                )
            )
        if not mappings:
            if output:
                self._fallback("map_events_to_para", "unparseable mapping list")
            return [
                EventMapping(event_id=event.id, category=ParaCategory.AREAS, reason=FALLBACK_MAPPING_REASON)
                for event in events
            ]
        return mappings

    def generate_events(self, account: str, projects: Sequence[Project]) -> list[CalendarEvent]:
        output = self._ask("generate_events", build_events_prompt(account, projects))
        parsed = parse_json_array(output) if output else None
        if parsed is None:
            if output:
                self._fallback("generate_events", "unparseable event list")
            return []
        events: list[CalendarEvent] = []
        for index, raw in enumerate(parsed, start=1):
            if isinstance(raw, dict):
                raw = {**raw, "id": str(index)}
            event = CalendarEvent.from_mapping(raw, fallback_id=str(index))
            if event is not None:
                events.append(event)
        return events

    def _ask(self, operation: str, prompt: str) -> str:
        """Return model output, or "" after publishing a fallback event."""

        if self.infer is None:
            self._fallback(operation, "inference unavailable")
            return ""
        try:
            _provider, output = self.infer(prompt, self.timeout_s)
        except Exception as exc:  # noqa: BLE001
            self._fallback(operation, str(exc) or exc.__class__.__name__)
            return ""
        if not output.strip():
            self._fallback(operation, "empty output")
            return ""
        return output

    def _fallback(self, operation: str, detail: str) -> None:
        if self.bus is None:
            return
        self.bus.publish(
            "assistant.fallback",
            f"{operation} fell back to local default: {detail}",
            severity="warn",
            source="assistant",
            metadata={"operation": operation},
        )
