from __future__ import annotations

from datetime import date
import unittest

from paranexus.dates import date_key, is_date_key, next_day_keys, offset_key, parse_date_key, resolve_date_input
from paranexus.models import CalendarEvent, LinkMetadata, ParaCategory, Project, ProjectItem, ProjectTerm, Task


class TestDateKeys(unittest.TestCase):
    def test_date_key_is_zero_padded(self) -> None:
        self.assertEqual("2024-01-05", date_key(date(2024, 1, 5)))

    def test_offset_and_next_days(self) -> None:
        start = date(2024, 2, 28)
        self.assertEqual("2024-03-01", offset_key(2, start=start))
        self.assertEqual(["2024-02-28", "2024-02-29", "2024-03-01"], next_day_keys(3, start=start))
        self.assertEqual([], next_day_keys(0, start=start))

    def test_is_date_key_is_strict(self) -> None:
        self.assertTrue(is_date_key("2024-06-01"))
        self.assertFalse(is_date_key("2024-6-1"))
        self.assertFalse(is_date_key("2024-02-30"))
        self.assertFalse(is_date_key(""))
        self.assertIsNone(parse_date_key("tomorrow"))

    def test_resolve_date_input(self) -> None:
        today = date(2024, 6, 1)
        self.assertEqual("2024-06-01", resolve_date_input("today", today=today))
        self.assertEqual("2024-06-02", resolve_date_input("Tomorrow", today=today))
        self.assertEqual("2024-05-31", resolve_date_input("yesterday", today=today))
        self.assertEqual("2024-06-08", resolve_date_input("+7", today=today))
        self.assertEqual("2024-05-29", resolve_date_input("-3", today=today))
        self.assertEqual("2024-12-24", resolve_date_input("2024-12-24", today=today))
        self.assertIsNone(resolve_date_input("someday", today=today))
        self.assertIsNone(resolve_date_input("+9999999999", today=today))
        self.assertIsNone(resolve_date_input("-3000000", today=today))


class TestCategory(unittest.TestCase):
    def test_capability_flags(self) -> None:
        self.assertFalse(ParaCategory.RESOURCES.toggleable)
        self.assertTrue(ParaCategory.AREAS.toggleable)
        self.assertTrue(ParaCategory.ARCHIVES.expandable)
        self.assertFalse(ParaCategory.PROJECTS.expandable)

    def test_parse_is_case_insensitive(self) -> None:
        self.assertIs(ParaCategory.RESOURCES, ParaCategory.parse("resources"))
        self.assertIsNone(ParaCategory.parse("inbox"))
        self.assertIs(ParaCategory.AREAS, ParaCategory.parse(None, ParaCategory.AREAS))


class TestRecords(unittest.TestCase):
    def test_task_round_trip_uses_camel_case_keys(self) -> None:
        task = Task(
            id="t1",
            title="[Launch] Draft",
            completed=True,
            category=ParaCategory.ARCHIVES,
            date="2024-06-01",
            notes="n",
            project_id="p1",
            project_item_id="i1",
            archived_items=(ProjectItem(id="i1", title="Draft", completed=True, deadline="2024-06-01"),),
            link_metadata=LinkMetadata(display_title="Doc", domain="example.com", is_pinned=True),
        )
        data = task.to_dict()
        self.assertEqual("p1", data["projectId"])
        self.assertEqual("i1", data["projectItemId"])
        self.assertEqual("Doc", data["linkMetadata"]["displayTitle"])
        self.assertTrue(data["linkMetadata"]["isPinned"])
        self.assertEqual(task, Task.from_mapping(data))

    def test_task_from_mapping_rejects_incomplete_records(self) -> None:
        self.assertIsNone(Task.from_mapping({"title": "no id", "date": "2024-06-01"}))
        self.assertIsNone(Task.from_mapping({"id": "x", "title": "no date"}))
        self.assertIsNone(Task.from_mapping("junk"))
        loose = Task.from_mapping({"id": "x", "date": "2024-06-01", "category": "Whatever"})
        assert loose is not None
        self.assertIs(ParaCategory.AREAS, loose.category)
        missing = Task.from_mapping({"id": "y", "date": "2024-06-01"})
        assert missing is not None
        self.assertIs(ParaCategory.AREAS, missing.category)

    def test_project_completion(self) -> None:
        empty = Project(id="p", title="Empty")
        self.assertFalse(empty.is_fully_complete)
        done = Project(id="p", title="Done", items=(ProjectItem(id="a", title="a", completed=True),))
        self.assertTrue(done.is_fully_complete)
        self.assertEqual((1, 1), (done.completed_count, done.total_count))

    def test_project_from_mapping_defaults(self) -> None:
        project = Project.from_mapping(
            {"id": "p", "title": "T", "term": "Long", "deadline": "", "items": [{"id": "i", "title": "x"}, "junk"]}
        )
        assert project is not None
        self.assertIs(ProjectTerm.LONG, project.term)
        self.assertIsNone(project.deadline)
        self.assertEqual(1, len(project.items))
        self.assertEqual("", project.to_dict()["deadline"])

    def test_calendar_event_fallback_id(self) -> None:
        event = CalendarEvent.from_mapping({"summary": "Standup", "start": "09:00 AM", "end": "09:15 AM"}, fallback_id="3")
        assert event is not None
        self.assertEqual("3", event.id)
        self.assertIsNone(event.location)
        self.assertIsNone(CalendarEvent.from_mapping({"summary": "  "}, fallback_id="1"))


if __name__ == "__main__":
    unittest.main()
