"""Tests for the configuration module."""

import os
import tempfile
import unittest
from argparse import Namespace

from src.config import Config, load_config, load_yaml_config

_ENV_KEYS = ("TOP_COUNT", "RATE_SIZE_THRESHOLD", "TOP_POLICY", "CMD_LOG_NAME", "REQUEST_LOG_NAME")


def _cli(**overrides) -> Namespace:
    values = {"top_count": None, "rate_size_threshold": None, "top_policy": None}
    values.update(overrides)
    return Namespace(**values)


class TestConfigDefaults(unittest.TestCase):
    def test_default_values(self):
        cfg = Config()
        self.assertEqual(cfg.cmd_log_name, "smb-cmd.log")
        self.assertEqual(cfg.request_log_name, "smb-request.log")
        self.assertEqual(cfg.top_count, 10)
        self.assertEqual(cfg.rate_size_threshold, 1024 * 1024)
        self.assertEqual(cfg.api_prefix, "/api/assets")
        self.assertEqual(cfg.json_listing_marker, ".json?limit=")
        self.assertIn("nt_transact_notify_change", cfg.notification_commands)
        self.assertEqual(cfg.top_policy, "legacy")

    def test_frozen(self):
        cfg = Config()
        with self.assertRaises(AttributeError):
            cfg.top_count = 3


class TestLoadYamlConfig(unittest.TestCase):
    def test_no_path(self):
        self.assertEqual(load_yaml_config(None), {})

    def test_missing_file(self):
        self.assertEqual(load_yaml_config("/nonexistent/analyzer.yml"), {})

    def test_reads_mapping(self):
        with tempfile.NamedTemporaryFile("w", suffix=".yml", delete=False) as f:
            f.write("top_count: 5\nnotification_commands:\n  - oplock_break\n")
            path = f.name
        try:
            self.assertEqual(
                load_yaml_config(path),
                {"top_count": 5, "notification_commands": ["oplock_break"]},
            )
        finally:
            os.unlink(path)

    def test_rejects_non_mapping(self):
        with tempfile.NamedTemporaryFile("w", suffix=".yml", delete=False) as f:
            f.write("- just\n- a list\n")
            path = f.name
        try:
            with self.assertRaises(ValueError):
                load_yaml_config(path)
        finally:
            os.unlink(path)


class TestLoadConfig(unittest.TestCase):
    def setUp(self):
        self._orig_env = os.environ.copy()
        for key in _ENV_KEYS:
            os.environ.pop(key, None)

    def tearDown(self):
        os.environ.clear()
        os.environ.update(self._orig_env)

    def test_defaults(self):
        self.assertEqual(load_config(), Config())

    def test_yaml_values(self):
        cfg = load_config(_cli(), {"top_count": 3, "notification_commands": ["oplock_break"]})
        self.assertEqual(cfg.top_count, 3)
        self.assertEqual(cfg.notification_commands, ("oplock_break",))

    def test_unknown_yaml_key_ignored(self):
        cfg = load_config(_cli(), {"colour": "blue"})
        self.assertEqual(cfg, Config())

    def test_env_overrides_yaml(self):
        os.environ["TOP_COUNT"] = "7"
        os.environ["RATE_SIZE_THRESHOLD"] = "2048"
        os.environ["TOP_POLICY"] = "exact"
        cfg = load_config(_cli(), {"top_count": 3})
        self.assertEqual(cfg.top_count, 7)
        self.assertEqual(cfg.rate_size_threshold, 2048)
        self.assertEqual(cfg.top_policy, "exact")

    def test_cli_overrides_env(self):
        os.environ["TOP_COUNT"] = "7"
        cfg = load_config(_cli(top_count=20, rate_size_threshold=0), {})
        self.assertEqual(cfg.top_count, 20)
        self.assertEqual(cfg.rate_size_threshold, 0)

    def test_log_names_from_env(self):
        os.environ["CMD_LOG_NAME"] = "cmd.log"
        os.environ["REQUEST_LOG_NAME"] = "req.log"
        cfg = load_config()
        self.assertEqual(cfg.cmd_log_name, "cmd.log")
        self.assertEqual(cfg.request_log_name, "req.log")

    def test_invalid_values(self):
        with self.assertRaises(ValueError):
            load_config(_cli(top_count=-1))
        with self.assertRaises(ValueError):
            load_config(_cli(rate_size_threshold=-5))
        with self.assertRaises(ValueError):
            load_config(_cli(), {"top_policy": "heap"})

    def test_non_numeric_env(self):
        os.environ["TOP_COUNT"] = "ten"
        with self.assertRaises(ValueError):
            load_config()

    def test_yaml_strings_coerced(self):
        cfg = load_config(None, {"top_count": "5", "rate_size_threshold": "2048", "top_policy": "exact"})
        self.assertEqual(cfg.top_count, 5)
        self.assertEqual(cfg.rate_size_threshold, 2048)
        self.assertEqual(cfg.top_policy, "exact")

    def test_yaml_integral_float_accepted(self):
        cfg = load_config(None, {"top_count": 4.0})
        self.assertEqual(cfg.top_count, 4)
        self.assertIsInstance(cfg.top_count, int)

    def test_yaml_wrong_types_rejected(self):
        bad = [
            {"top_count": "five"},
            {"top_count": 2.5},
            {"top_count": True},
            {"top_count": None},
            {"rate_size_threshold": [1]},
            {"top_policy": ["exact"]},
            {"notification_commands": 5},
            {"notification_commands": [["nested"]]},
        ]
        for data in bad:
            with self.subTest(data=data):
                with self.assertRaises(ValueError):
                    load_config(None, data)

    def test_single_notification_command(self):
        cfg = load_config(None, {"notification_commands": "oplock_break"})
        self.assertEqual(cfg.notification_commands, ("oplock_break",))


if __name__ == "__main__":
    unittest.main()
