from __future__ import annotations

from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from paranexus.config import NexusConfig, explain_config, load_config
from paranexus.paths import ensure_runtime_dirs, find_workspace_root, runtime_paths


class TestConfig(unittest.TestCase):
    def test_missing_file_uses_defaults(self) -> None:
        with TemporaryDirectory() as tmp:
            cfg, warning = load_config(Path(tmp) / "paranexus.toml")
        self.assertEqual("", warning)
        self.assertEqual(NexusConfig(), cfg)
        self.assertEqual("auto", cfg.inference.provider)
        self.assertTrue(cfg.gate.enabled)
        self.assertEqual(7, cfg.daily.week_days)

    def test_values_are_coerced(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "paranexus.toml"
            path.write_text(
                "\n".join(
                    [
                        "[workspace]",
                        'name = "  Home   Base "',
                        "[inference]",
                        'provider = "CLAUDE"',
                        "timeout_s = 1",
                        "[calendar]",
                        'source = "file"',
                        'events_file = "events.json"',
                        "[gate]",
                        'enabled = "no"',
                        'min_length = "x"',
                        "[daily]",
                        "week_days = 99",
                    ]
                ),
                encoding="utf-8",
            )
            cfg, warning = load_config(path)

        self.assertEqual("", warning)
        self.assertEqual("Home Base", cfg.workspace.name)
        self.assertEqual("claude", cfg.inference.provider)
        self.assertEqual(5.0, cfg.inference.timeout_s)
        self.assertEqual(("file", "events.json"), (cfg.calendar.source, cfg.calendar.events_file))
        self.assertFalse(cfg.gate.enabled)
        self.assertEqual(4, cfg.gate.min_length)
        self.assertEqual(31, cfg.daily.week_days)

    def test_unknown_choice_falls_back(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "paranexus.toml"
            path.write_text('[inference]\nprovider = "llama"\n[calendar]\nsource = "ics"\n', encoding="utf-8")
            cfg, _ = load_config(path)
        self.assertEqual("auto", cfg.inference.provider)
        self.assertEqual("inference", cfg.calendar.source)

    def test_invalid_toml_returns_warning(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "paranexus.toml"
            path.write_text("[workspace\nname=", encoding="utf-8")
            cfg, warning = load_config(path)
        self.assertEqual(NexusConfig(), cfg)
        self.assertIn("parse failed", warning)

    def test_explain_config_mentions_every_table(self) -> None:
        text = explain_config(NexusConfig())
        for table in ("[workspace]", "[inference]", "[calendar]", "[gate]", "[daily]"):
            self.assertIn(table, text)
        self.assertIn("PARANEXUS_INFERENCE_PROVIDER", text)


class TestPaths(unittest.TestCase):
    def test_workspace_found_from_nested_directory(self) -> None:
        with TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / "paranexus.toml").write_text("", encoding="utf-8")
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            self.assertEqual(root, find_workspace_root(nested))

    def test_runtime_dirs_created(self) -> None:
        with TemporaryDirectory() as tmp:
            paths = ensure_runtime_dirs(runtime_paths(Path(tmp)))
            self.assertTrue(paths.state_dir.is_dir())
            self.assertTrue(paths.logs_dir.is_dir())
            self.assertEqual(Path(tmp) / ".paranexus" / "logs" / "events.jsonl", paths.events_log)


if __name__ == "__main__":
    unittest.main()
