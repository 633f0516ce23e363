from __future__ import annotations

import os
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest
from unittest.mock import patch

from paranexus.app import NexusTerminalApp, _activity_text, _summarize_text
from paranexus.runtime import open_runtime


class TestAppHelpers(unittest.TestCase):
    def test_activity_text(self) -> None:
        self.assertEqual("Activity\n- none yet", _activity_text([]))
        self.assertEqual("Activity\n- a\n- b", _activity_text(["a", "b"]))

    def test_summarize_text(self) -> None:
        self.assertEqual("a b", _summarize_text("a \n b"))
        self.assertEqual("abcdefg...", _summarize_text("abcdefghijklmnop", limit=10))


@patch.dict(os.environ, {"PARANEXUS_INFERENCE_PROVIDER": "none"})
class TestAppInput(unittest.IsolatedAsyncioTestCase):
    async def test_plain_text_becomes_a_task(self) -> None:
        with TemporaryDirectory() as tmp:
            runtime = open_runtime(Path(tmp))
            app = NexusTerminalApp(runtime)
            async with app.run_test() as pilot:
                app.input_box.value = "Water the plants"
                await pilot.press("enter")
                await pilot.pause()
                async with app.command_lock:
                    pass
                await pilot.pause()

            self.assertEqual(["Water the plants"], [task.title for task in runtime.store.tasks])
            self.assertTrue(any(line.startswith("Nexus: added") for line in app.transcript_lines))
            self.assertIn("[user] add Water the plants", runtime.paths.app_log.read_text(encoding="utf-8"))


if __name__ == "__main__":
    unittest.main()
