"""Tests for meter.config -- configuration persistence."""

import os
import tempfile
import unittest
from unittest import mock

from meter.config import (
    DEFAULTS,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("probe_host", "probe_port", "probe_timeout", "sample_interval",
                    "probe_interval", "download_urls", "upload_url", "request_timeout",
                    "log_level", "log_file"):
            self.assertIn(key, DEFAULTS)

    def test_download_candidates_are_ordered_list(self):
        self.assertIsInstance(DEFAULTS["download_urls"], list)
        self.assertGreaterEqual(len(DEFAULTS["download_urls"]), 2)


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["probe_port"], 443)
                self.assertEqual(cfg["sample_interval"], 1.0)

    def test_loaded_lists_are_not_shared_with_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                cfg = load_config()
                cfg["download_urls"].append("http://example.invalid/")
                self.assertNotIn("http://example.invalid/", DEFAULTS["download_urls"])

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                save_config({"probe_host": "8.8.8.8", "probe_port": 53})
                cfg = load_config()
                self.assertEqual(cfg["probe_host"], "8.8.8.8")
                self.assertEqual(cfg["probe_port"], 53)
                # Defaults still present
                self.assertEqual(cfg["probe_interval"], 2.0)

    def test_unknown_keys_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                save_config({"bogus": 1})
                self.assertNotIn("bogus", load_config())

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("meter.config._config_path", return_value=path):
                with self.assertLogs("meter.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg["probe_port"], 443)

    def test_get_set_value(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                set_config_value("probe_timeout", 1.5)
                self.assertEqual(get_config_value("probe_timeout"), 1.5)

                set_config_value("log_level", "DEBUG")
                self.assertEqual(get_config_value("log_level"), "DEBUG")


if __name__ == "__main__":
    unittest.main()
