"""
Update Notice - Notification Delivery
Sends update reports by email or as desktop notifications.
"""

import logging
import shutil
import smtplib
import subprocess
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import List, Optional

logger = logging.getLogger(__name__)


def sender_address(site_url: str) -> str:
    """'plugins@<host>' with scheme and a leading 'www.' removed."""
    host = site_url
    for prefix in ("http://", "https://", "www."):
        host = host.replace(prefix, "")
    return f"plugins@{host.strip('/')}"


class Notifier(ABC):
    """Delivers a plain text report to a list of recipients."""

    @abstractmethod
    def send(self, recipients: List[str], subject: str, body: str) -> bool:
        """
        Send a notification.

        Returns:
            True if the notification was handed off successfully
        """


class EmailNotifier(Notifier):
    """Sends plain text mail through an SMTP server."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 25,
        sender: str = "plugins@localhost",
        username: Optional[str] = None,
        password: Optional[str] = None,
        starttls: bool = False,
        timeout: float = 10,
        sender_name: Optional[str] = None,
    ):
        self.host = host
        self.port = int(port)
        self.sender = sender
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout
        self.sender_name = sender_name

    @classmethod
    def from_config(cls, smtp: dict, site_url: str, site_name: Optional[str] = None) -> "EmailNotifier":
        return cls(
            host=smtp.get("host", "localhost"),
            port=smtp.get("port", 25),
            sender=smtp.get("sender") or sender_address(site_url),
            username=smtp.get("username"),
            password=smtp.get("password"),
            starttls=bool(smtp.get("starttls", False)),
            timeout=smtp.get("timeout", 10),
            sender_name=smtp.get("sender_name") or site_name,
        )

    def build_message(self, recipients: List[str], subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["From"] = formataddr((self.sender_name, self.sender)) if self.sender_name else self.sender
        msg["To"] = ", ".join(recipients)
        msg["Subject"] = subject
        return msg

    def send(self, recipients: List[str], subject: str, body: str) -> bool:
        if not recipients:
            logger.error("No recipients configured, email not sent")
            return False

        msg = self.build_message(recipients, subject, body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.ehlo()
                if self.starttls:
                    server.starttls()
                    server.ehlo()
                if self.username:
                    server.login(self.username, self.password or "")
                server.sendmail(self.sender, recipients, msg.as_string())
            logger.info(f"Sent '{subject}' to {', '.join(recipients)}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email Error: {e}")
            return False


class DesktopNotifier(Notifier):
    """Shows the report with notify-send; recipients are ignored."""

    def __init__(self, app_name: str = "Update Notice"):
        self.app_name = app_name
        self._has_notify_send = shutil.which("notify-send") is not None

    def send(self, recipients: List[str], subject: str, body: str) -> bool:
        if not self._has_notify_send:
            logger.warning("notify-send not available")
            return False

        try:
            result = subprocess.run(
                [
                    "notify-send",
                    subject,
                    body,
                    "-i", "software-update-available",
                    "-u", "normal",
                    "-a", self.app_name,
                ],
                capture_output=True,
                timeout=5,
            )
            return result.returncode == 0
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Failed to send notification: {e}")
            return False


class LogNotifier(Notifier):
    """Writes the report to the log. Useful for dry runs."""

    def send(self, recipients: List[str], subject: str, body: str) -> bool:
        logger.info(f"[{', '.join(recipients) or 'no recipients'}] {subject}\n{body}")
        return True
