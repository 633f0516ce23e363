from __future__ import annotations

import unittest

from paranexus.models import LinkMetadata, ParaCategory

from tests.helpers import TODAY, make_engine, make_item, make_project, make_task, mirrors_of


class TestDailyTaskMutations(unittest.TestCase):
    def test_toggle_plain_task(self) -> None:
        task = make_task("Water plants")
        engine, store, _, _ = make_engine(tasks=[task])

        self.assertTrue(engine.toggle_task(task.id))
        self.assertTrue(store.tasks[0].completed)
        self.assertTrue(engine.toggle_task(task.id))
        self.assertFalse(store.tasks[0].completed)

    def test_resources_and_archive_records_are_not_toggleable(self) -> None:
        resource = make_task("Read this", category=ParaCategory.RESOURCES)
        archive = make_task("[Archived Project] X", category=ParaCategory.ARCHIVES, archived_items=())
        loose_archive = make_task("Old note", category=ParaCategory.ARCHIVES)
        engine, store, _, _ = make_engine(tasks=[resource, archive, loose_archive])

        self.assertFalse(engine.toggle_task(resource.id))
        self.assertFalse(engine.toggle_task(archive.id))
        self.assertTrue(engine.toggle_task(loose_archive.id))
        self.assertEqual(1, store.commits)

    def test_toggle_mirrored_task_updates_item_and_archives(self) -> None:
        item = make_item("Draft", deadline=TODAY)
        project = make_project("Launch", [item])
        engine, store, _, _ = make_engine(projects=[project])
        engine.handle_update_project(project)
        mirror = mirrors_of(store, item.id)[0]

        self.assertTrue(engine.toggle_task(mirror.id))

        self.assertIsNone(store.state.find_project(project.id))
        self.assertTrue(mirrors_of(store, item.id)[0].completed)
        self.assertTrue(any(task.category is ParaCategory.ARCHIVES for task in store.tasks))

    def test_toggle_mirrored_task_keeps_item_in_step(self) -> None:
        item = make_item("Draft", deadline=TODAY)
        project = make_project("Launch", [item, make_item("Review")])
        engine, store, _, _ = make_engine(projects=[project])
        engine.handle_update_project(project)
        mirror = mirrors_of(store, item.id)[0]

        engine.toggle_task(mirror.id)

        stored = store.state.find_project(project.id)
        assert stored is not None
        self.assertTrue(stored.find_item(item.id).completed)
        self.assertTrue(mirrors_of(store, item.id)[0].completed)

    def test_redating_mirrored_task_moves_deadline(self) -> None:
        item = make_item("Draft", deadline=TODAY)
        project = make_project("Launch", [item])
        engine, store, _, _ = make_engine(projects=[project])
        engine.handle_update_project(project)
        mirror = mirrors_of(store, item.id)[0]

        engine.update_task_date(mirror.id, "2024-06-10")

        stored = store.state.find_project(project.id)
        assert stored is not None
        self.assertEqual("2024-06-10", stored.find_item(item.id).deadline)
        moved = mirrors_of(store, item.id)
        self.assertEqual(1, len(moved))
        self.assertEqual(mirror.id, moved[0].id)
        self.assertEqual("2024-06-10", moved[0].date)

    def test_deleting_mirrored_task_clears_deadline(self) -> None:
        item = make_item("Draft", deadline=TODAY)
        project = make_project("Launch", [item])
        engine, store, _, _ = make_engine(projects=[project])
        engine.handle_update_project(project)
        mirror = mirrors_of(store, item.id)[0]

        self.assertTrue(engine.delete_task(mirror.id))

        self.assertEqual([], mirrors_of(store, item.id))
        stored = store.state.find_project(project.id)
        assert stored is not None
        self.assertIsNone(stored.find_item(item.id).deadline)

    def test_orphan_mirror_behaves_like_plain_task(self) -> None:
        orphan = make_task("[Gone] Step", project_id="gone", project_item_id="gone-item")
        engine, store, _, _ = make_engine(tasks=[orphan])

        engine.update_task_date(orphan.id, "2024-06-03")
        self.assertEqual("2024-06-03", store.tasks[0].date)
        engine.delete_task(orphan.id)
        self.assertEqual((), store.tasks)

    def test_recover_overdue_moves_everything_in_one_commit(self) -> None:
        late_a = make_task("Late A", date="2024-05-20")
        late_b = make_task("Late B", date="2024-05-30")
        done = make_task("Done", date="2024-05-01", completed=True)
        future = make_task("Future", date="2024-06-05")
        item = make_item("Step", deadline="2024-05-25")
        project = make_project("Launch", [item, make_item("Other")])
        engine, store, _, _ = make_engine(tasks=[late_a, late_b, done, future], projects=[project])
        engine.handle_update_project(project)
        commits = store.commits

        self.assertEqual(3, engine.recover_overdue())

        self.assertEqual(commits + 1, store.commits)
        by_title = {task.title: task for task in store.tasks}
        self.assertEqual(TODAY, by_title["Late A"].date)
        self.assertEqual(TODAY, by_title["Late B"].date)
        self.assertEqual("2024-05-01", by_title["Done"].date)
        self.assertEqual("2024-06-05", by_title["Future"].date)
        stored = store.state.find_project(project.id)
        assert stored is not None
        self.assertEqual(TODAY, stored.find_item(item.id).deadline)
        self.assertEqual(0, engine.recover_overdue())

    def test_move_to_today(self) -> None:
        task = make_task("Late", date="2024-05-01")
        engine, store, _, _ = make_engine(tasks=[task])
        self.assertTrue(engine.move_to_today(task.id))
        self.assertEqual(TODAY, store.tasks[0].date)

    def test_import_prepends_in_order(self) -> None:
        existing = make_task("Existing")
        engine, store, _, _ = make_engine(tasks=[existing])
        first, second = make_task("First"), make_task("Second")

        self.assertEqual(2, engine.import_tasks([first, second]))
        self.assertEqual((first, second, existing), store.tasks)
        self.assertEqual(0, engine.import_tasks([]))

    def test_set_pinned_only_for_links(self) -> None:
        link = make_task("https://example.com", category=ParaCategory.RESOURCES, link_metadata=LinkMetadata(domain="example.com"))
        plain = make_task("Plain")
        engine, store, _, _ = make_engine(tasks=[link, plain])

        self.assertTrue(engine.set_pinned(link.id, True))
        self.assertFalse(engine.set_pinned(plain.id, True))
        pinned = store.state.find_task(link.id)
        assert pinned is not None and pinned.link_metadata is not None
        self.assertTrue(pinned.link_metadata.is_pinned)

    def test_unknown_task_ids_are_noops(self) -> None:
        engine, store, _, _ = make_engine()
        self.assertFalse(engine.toggle_task("nope"))
        self.assertFalse(engine.delete_task("nope"))
        self.assertFalse(engine.update_task_date("nope", TODAY))
        self.assertFalse(engine.set_pinned("nope", True))
        self.assertEqual(0, store.commits)

    def test_commit_persists_both_collections(self) -> None:
        engine, _, kv, _ = make_engine()
        engine.add_new_task("Launch", ParaCategory.PROJECTS, TODAY)
        self.assertIn("para_tasks", kv.data)
        self.assertIn("para_projects", kv.data)
        self.assertIn("Launch", kv.data["para_projects"])


if __name__ == "__main__":
    unittest.main()
