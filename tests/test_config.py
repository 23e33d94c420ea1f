"""
Tests for update_notice.config and the command line entry point.
"""

import sys
import tempfile
from pathlib import Path
from unittest import mock

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import io
import json
import unittest
from contextlib import redirect_stdout
from fakes import FakeSource, RecordingNotifier
from update_notice import cli
from update_notice.config import AppConfig, default_config
from update_notice.scheduler import TASK_NAME, InProcessBackend, MemoryBackend
from update_notice.service import UpdateNotifier
from update_notice.settings import MemorySettingsStore


class TestAppConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "config.json"

    def tearDown(self):
        self.tmp.cleanup()

    def test_missing_file_uses_defaults(self):
        config = AppConfig.load(self.path)
        self.assertEqual(config.data, default_config())
        self.assertEqual(config.platform_name, "WordPress")

    def test_nested_values_merge(self):
        self.path.write_text(json.dumps({"site_name": "Blog", "smtp": {"host": "mail.example.com"}}))
        config = AppConfig.load(self.path)
        self.assertEqual(config.site_name, "Blog")
        self.assertEqual(config.smtp["host"], "mail.example.com")
        self.assertEqual(config.smtp["port"], 25)

    def test_invalid_json(self):
        self.path.write_text("{")
        with self.assertLogs("update_notice.config", level="WARNING"):
            config = AppConfig.load(self.path)
        self.assertEqual(config.site_name, default_config()["site_name"])

    def test_admin_url(self):
        config = AppConfig(data=dict(default_config(), site_url="https://example.com"))
        self.assertEqual(config.admin_url, "https://example.com/wp-admin/")

    def test_save(self):
        config = AppConfig.load(self.path)
        config.data["site_name"] = "Saved"
        config.save()
        self.assertEqual(AppConfig.load(self.path).site_name, "Saved")


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        base = Path(self.tmp.name)
        self.config_path = base / "config.json"
        self.config_path.write_text(json.dumps({
            "settings_path": str(base / "settings.json"),
            "manifest_path": str(base / "components.json"),
            "state_dir": str(base / "state"),
            "log_file": str(base / "check.log"),
            "notifier": "log",
            "scheduler": "systemd",
        }))
        (base / "components.json").write_text(json.dumps({"components": [
            {"id": "akismet/akismet.php", "name": "Akismet", "version": "5.0",
             "update": {"new_version": "5.3", "url": "https://wordpress.org/plugins/akismet/"}},
        ]}))

    def tearDown(self):
        self.tmp.cleanup()

    def run_cli(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            code = cli.main(["-c", str(self.config_path), *args])
        return code, out.getvalue()

    def test_intervals(self):
        code, out = self.run_cli("intervals")
        self.assertEqual(code, 0)
        self.assertIn("twicedaily", out)

    @mock.patch("update_notice.scheduler.subprocess.run")
    def test_check_then_quiet(self, _run):
        code, out = self.run_cli("check")
        self.assertEqual((code, out.strip()), (0, "Reported 1 update(s)"))
        code, out = self.run_cli("check")
        self.assertEqual((code, out.strip()), (0, "Nothing new to report"))

    @mock.patch("update_notice.scheduler.subprocess.run")
    def test_configure_rejects_bad_frequency(self, _run):
        code, _ = self.run_cli("configure", "--frequency", "bogus")
        self.assertEqual(code, 1)

    @mock.patch("update_notice.scheduler.subprocess.run")
    def test_configure_scope(self, _run):
        code, out = self.run_cli("configure", "--scope", "active")
        self.assertEqual(code, 0)
        self.assertIn("notify_plugins", out)

    @mock.patch("update_notice.scheduler.subprocess.run")
    def test_activate_with_inprocess_scheduler(self, run):
        config = json.loads(self.config_path.read_text())
        config["scheduler"] = "inprocess"
        self.config_path.write_text(json.dumps(config))
        code, out = self.run_cli("activate")
        self.assertEqual(code, 1)
        self.assertIn("update-notice run", out)
        run.assert_not_called()


class TestRunLoop(unittest.TestCase):

    def make_service(self, store, backend):
        return UpdateNotifier(
            store=store,
            source=FakeSource(),
            notifier=RecordingNotifier(),
            scheduler_backend=backend,
            admin_email="admin@example.com",
        )

    def test_frequency_change_reaches_running_scheduler(self):
        store = MemorySettingsStore()
        backend = InProcessBackend()
        daemon = self.make_service(store, backend)
        cli.run_pending_checks(daemon, backend)
        self.assertEqual(backend.current_interval_for(TASK_NAME), 3600)

        # A separate 'configure' invocation sharing the settings store
        self.make_service(store, MemoryBackend()).update_settings({"frequency": "daily"})

        cli.run_pending_checks(daemon, backend)
        self.assertEqual(backend.current_interval_for(TASK_NAME), 86400)
        self.assertEqual(len(backend.registry.get_jobs(TASK_NAME)), 1)

    def test_unchanged_frequency_keeps_next_run(self):
        store = MemorySettingsStore()
        backend = InProcessBackend()
        daemon = self.make_service(store, backend)
        first = cli.run_pending_checks(daemon, backend)
        next_run = backend.next_run_for(TASK_NAME)
        cli.run_pending_checks(daemon, backend)
        self.assertEqual(backend.next_run_for(TASK_NAME), next_run)
        self.assertGreater(first, 3000)


if __name__ == "__main__":
    unittest.main()
