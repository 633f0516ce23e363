from __future__ import annotations

import unittest

from paranexus.models import LinkMetadata, ParaCategory, ProjectStatus
from paranexus.store import AppState
from paranexus.views import (
    active_projects,
    daily_board,
    format_task_line,
    overdue_groups,
    overdue_tasks,
    pinned_links,
    project_progress,
    sorted_items,
    week_summary,
)
from paranexus import views

from tests.helpers import TODAY, make_item, make_project, make_task


class TestProjectProjections(unittest.TestCase):
    def test_progress_rounds_half_up(self) -> None:
        project = make_project("P", [make_item("a", completed=True), make_item("b"), make_item("c")])
        self.assertEqual(33, project_progress(project))
        two_thirds = make_project("P", [make_item("a", completed=True), make_item("b", completed=True), make_item("c")])
        self.assertEqual(67, project_progress(two_thirds))
        half = make_project("P", [make_item("a", completed=True)] + [make_item(str(n)) for n in range(7)])
        self.assertEqual(13, project_progress(half))
        self.assertEqual(0, project_progress(make_project("Empty")))

    def test_sorted_items_puts_dated_first(self) -> None:
        undated_a = make_item("u1")
        late = make_item("late", deadline="2024-06-09")
        undated_b = make_item("u2")
        early = make_item("early", deadline="2024-06-02")
        project = make_project("P", [undated_a, late, undated_b, early])
        self.assertEqual([early, late, undated_a, undated_b], sorted_items(project))

    def test_active_projects_filters_status(self) -> None:
        live = make_project("Live")
        held = make_project("Held", status=ProjectStatus.ON_HOLD)
        state = AppState(projects=(live, held))
        self.assertEqual([live], active_projects(state))


class TestDailyBoard(unittest.TestCase):
    def test_columns_sorted_and_projects_listed(self) -> None:
        tasks = (
            make_task("banana", category=ParaCategory.AREAS),
            make_task("Apple", category=ParaCategory.AREAS),
            make_task("cherry", category=ParaCategory.AREAS, date="2024-06-02"),
            make_task("Ref", category=ParaCategory.RESOURCES),
        )
        project = make_project("Launch", [make_item("a", completed=True), make_item("b")])
        state = AppState(tasks=tasks, projects=(project,))

        board = daily_board(state, TODAY)

        areas = board.column(ParaCategory.AREAS)
        self.assertEqual(["Apple", "banana"], [task.title for task in areas.tasks])
        self.assertEqual(2, areas.count)
        projects_column = board.column(ParaCategory.PROJECTS)
        self.assertEqual(1, projects_column.count)
        self.assertEqual(50, projects_column.projects[0].progress)
        self.assertEqual(1, board.column(ParaCategory.RESOURCES).count)
        self.assertEqual(0, board.column(ParaCategory.ARCHIVES).count)


class TestOverdueAndWeek(unittest.TestCase):
    def setUp(self) -> None:
        self.linked = make_task("[Launch] Step", date="2024-05-30", project_id="p1", project_item_id="i1")
        self.project_task = make_task("Launch", category=ParaCategory.PROJECTS, date="2024-05-29")
        self.area = make_task("Gym", date="2024-05-31")
        self.resource = make_task("Read", category=ParaCategory.RESOURCES, date="2024-05-15")
        self.done = make_task("Done", date="2024-05-01", completed=True)
        self.future = make_task("Soon", date="2024-06-03")
        self.state = AppState(
            tasks=(self.linked, self.project_task, self.area, self.resource, self.done, self.future),
        )

    def test_overdue_excludes_completed_and_future(self) -> None:
        overdue = overdue_tasks(self.state, TODAY)
        self.assertEqual({self.linked.id, self.project_task.id, self.area.id, self.resource.id}, {t.id for t in overdue})

    def test_overdue_groups(self) -> None:
        groups = overdue_groups(self.state, TODAY)
        self.assertEqual([self.linked, self.project_task], groups.projects)
        self.assertEqual([self.area], groups.areas)
        self.assertEqual([self.resource], groups.others)
        self.assertEqual(4, groups.total)

    def test_week_summary_counts(self) -> None:
        tasks = (
            make_task("[P] a", date=TODAY, project_id="p1", project_item_id="i1"),
            make_task("Area", date=TODAY),
            make_task("Ref", category=ParaCategory.RESOURCES, date=TODAY),
            make_task("Proj", category=ParaCategory.PROJECTS, date="2024-06-03"),
        )
        summary = week_summary(AppState(tasks=tasks), TODAY, days=3)
        self.assertEqual(["2024-06-01", "2024-06-02", "2024-06-03"], [day.date for day in summary])
        self.assertEqual((1, 1, 3), (summary[0].project_count, summary[0].area_count, summary[0].total))
        self.assertEqual(0, summary[1].total)
        self.assertEqual(1, summary[2].project_count)


class TestLinksAndFormatting(unittest.TestCase):
    def test_pinned_links(self) -> None:
        pinned = make_task("https://a.example", link_metadata=LinkMetadata(domain="a.example", is_pinned=True))
        unpinned = make_task("https://b.example", link_metadata=LinkMetadata(domain="b.example"))
        self.assertEqual([pinned], pinned_links(AppState(tasks=(pinned, unpinned))))

    def test_format_task_line_flags(self) -> None:
        task = make_task("Gym", date="2024-05-31", project_id="p1", project_item_id="i1")
        line = format_task_line(task, today=TODAY)
        self.assertTrue(line.startswith(f"[ ] {task.id[:8]} Gym"))
        self.assertIn("linked", line)
        self.assertIn("overdue 2024-05-31", line)

        resource = make_task("Doc", category=ParaCategory.RESOURCES)
        self.assertTrue(format_task_line(resource).startswith("[-]"))

    def test_find_project_by_title(self) -> None:
        project = make_project("Launch")
        state = AppState(projects=(project,))
        self.assertIs(project, views.find_project_by_title(state, "  LAUNCH "))
        self.assertIsNone(views.find_project_by_title(state, "Landing"))


if __name__ == "__main__":
    unittest.main()
