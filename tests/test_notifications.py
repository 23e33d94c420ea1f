"""
Tests for update_notice.notifications — delivery backends.
"""

import sys
from pathlib import Path
from unittest import mock

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import smtplib
import subprocess
import unittest
from update_notice.notifications import (
    DesktopNotifier,
    EmailNotifier,
    LogNotifier,
    sender_address,
)


class TestSenderAddress(unittest.TestCase):

    def test_strips_scheme_and_www(self):
        self.assertEqual(sender_address("https://www.example.com/"), "plugins@example.com")
        self.assertEqual(sender_address("http://blog.example.org"), "plugins@blog.example.org")


class TestEmailNotifier(unittest.TestCase):

    def make(self, **kwargs):
        defaults = dict(host="smtp.example.com", port=587, sender="plugins@example.com")
        defaults.update(kwargs)
        return EmailNotifier(**defaults)

    def test_build_message(self):
        msg = self.make(sender_name="Example Blog").build_message(
            ["a@example.com", "b@example.com"], "Plugin Updates For Example Blog", "body text"
        )
        self.assertEqual(msg["To"], "a@example.com, b@example.com")
        self.assertEqual(msg["Subject"], "Plugin Updates For Example Blog")
        self.assertEqual(msg["From"], "Example Blog <plugins@example.com>")
        self.assertEqual(msg.get_content_type(), "text/plain")

    @mock.patch("update_notice.notifications.smtplib.SMTP")
    def test_send(self, smtp_cls):
        server = smtp_cls.return_value.__enter__.return_value
        notifier = self.make(username="user", password="secret", starttls=True)
        self.assertTrue(notifier.send(["a@example.com"], "Subject", "Body"))
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=10)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "secret")
        from_addr, to_addrs, _ = server.sendmail.call_args.args
        self.assertEqual(from_addr, "plugins@example.com")
        self.assertEqual(to_addrs, ["a@example.com"])

    @mock.patch("update_notice.notifications.smtplib.SMTP")
    def test_plain_smtp_skips_tls_and_login(self, smtp_cls):
        server = smtp_cls.return_value.__enter__.return_value
        self.assertTrue(self.make().send(["a@example.com"], "Subject", "Body"))
        server.starttls.assert_not_called()
        server.login.assert_not_called()

    @mock.patch("update_notice.notifications.smtplib.SMTP")
    def test_smtp_error_returns_false(self, smtp_cls):
        smtp_cls.side_effect = smtplib.SMTPConnectError(421, "busy")
        self.assertFalse(self.make().send(["a@example.com"], "Subject", "Body"))

    @mock.patch("update_notice.notifications.smtplib.SMTP")
    def test_no_recipients(self, smtp_cls):
        self.assertFalse(self.make().send([], "Subject", "Body"))
        smtp_cls.assert_not_called()

    def test_from_config(self):
        notifier = EmailNotifier.from_config(
            {"host": "mail", "port": "2525", "starttls": 1}, "https://www.example.com/", "Example"
        )
        self.assertEqual(notifier.port, 2525)
        self.assertTrue(notifier.starttls)
        self.assertEqual(notifier.sender, "plugins@example.com")
        self.assertEqual(notifier.sender_name, "Example")


class TestDesktopNotifier(unittest.TestCase):

    @mock.patch("update_notice.notifications.shutil.which", return_value=None)
    def test_without_notify_send(self, _which):
        self.assertFalse(DesktopNotifier().send([], "Subject", "Body"))

    @mock.patch("update_notice.notifications.subprocess.run")
    @mock.patch("update_notice.notifications.shutil.which", return_value="/usr/bin/notify-send")
    def test_send(self, _which, run):
        run.return_value = mock.Mock(returncode=0)
        self.assertTrue(DesktopNotifier().send([], "Subject", "Body"))
        args = run.call_args.args[0]
        self.assertEqual(args[:3], ["notify-send", "Subject", "Body"])

    @mock.patch("update_notice.notifications.subprocess.run")
    @mock.patch("update_notice.notifications.shutil.which", return_value="/usr/bin/notify-send")
    def test_timeout(self, _which, run):
        run.side_effect = subprocess.TimeoutExpired("notify-send", 5)
        self.assertFalse(DesktopNotifier().send([], "Subject", "Body"))


class TestLogNotifier(unittest.TestCase):

    def test_logs_report(self):
        with self.assertLogs("update_notice.notifications", level="INFO") as logs:
            self.assertTrue(LogNotifier().send(["a@example.com"], "Subject", "Body"))
        self.assertIn("Subject", logs.output[0])


if __name__ == "__main__":
    unittest.main()
