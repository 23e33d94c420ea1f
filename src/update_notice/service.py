"""
Update Notice - Service
Wires settings, scheduler, engine and notifier together.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from update_sources import ManifestSource, UpdateSource, WordPressOrgSource

from update_notice.config import AppConfig
from update_notice.engine import CandidateFilter, CycleResult, NotificationEngine
from update_notice.errors import ConfigurationInvalid, DeliveryFailed
from update_notice.intervals import IntervalTable
from update_notice.notifications import DesktopNotifier, EmailNotifier, LogNotifier, Notifier
from update_notice.scheduler import (
    TASK_NAME,
    InProcessBackend,
    Scheduler,
    SchedulerBackend,
    SystemdTimerBackend,
)
from update_notice.settings import (
    CheckScope,
    JsonFileSettingsStore,
    SettingsManager,
    SettingsStore,
    parse_recipients,
)

logger = logging.getLogger(__name__)

TEST_MESSAGE = "Everything seems to be working just fine :)"


class UpdateNotifier:
    """
    Update notification service.

    All collaborators are passed in; ``from_config`` builds the default set
    from an ``AppConfig``.
    """

    def __init__(
        self,
        store: SettingsStore,
        source: UpdateSource,
        notifier: Notifier,
        scheduler_backend: SchedulerBackend,
        intervals: Optional[IntervalTable] = None,
        site_name: str = "My Site",
        site_url: str = "",
        admin_url: str = "",
        admin_email: str = "",
        platform_name: str = "WordPress",
        filters: Optional[Sequence[CandidateFilter]] = None,
        lock_dir: Optional[Path] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.site_name = site_name
        self.intervals = intervals or IntervalTable()
        self.settings = SettingsManager(store, admin_email)
        self.notifier = notifier
        self.source = source
        self.scheduler = Scheduler(
            scheduler_backend, self.intervals, TASK_NAME, clock=clock or datetime.now
        )
        self.engine = NotificationEngine(
            self.settings,
            source,
            filters=filters,
            site_url=site_url,
            admin_url=admin_url,
            platform_name=platform_name,
            lock_dir=lock_dir,
        )
        if isinstance(scheduler_backend, InProcessBackend):
            scheduler_backend.register_handler(TASK_NAME, self.run_check_cycle_now)
        # Settings are brought up to date on every start
        self.settings.migrate()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        filters: Optional[Sequence[CandidateFilter]] = None,
        backend: Optional[SchedulerBackend] = None,
    ) -> "UpdateNotifier":
        """Build the service with the collaborators named in the config."""
        return cls(
            store=JsonFileSettingsStore(config.settings_path),
            source=build_source(config),
            notifier=build_notifier(config),
            scheduler_backend=backend or build_backend(config),
            intervals=IntervalTable.with_extra(config.get("intervals")),
            site_name=config.site_name,
            site_url=config.site_url,
            admin_url=config.admin_url,
            admin_email=config.admin_email,
            platform_name=config.platform_name,
            filters=filters,
            lock_dir=config.state_dir,
        )

    def activate(self) -> bool:
        """Schedule the recurring check for the configured frequency."""
        return self.scheduler.reconcile(self.settings.load().frequency)

    def deactivate(self) -> None:
        self.scheduler.cancel()

    def subject(self) -> str:
        return f"Plugin Updates For {self.site_name}"

    def deliver(self, body: str) -> None:
        """
        Send a report to the configured recipients.

        Raises:
            DeliveryFailed: if the notifier could not send it
        """
        recipients = self.settings.load().notify_to
        try:
            sent = self.notifier.send(recipients, self.subject(), body)
        except Exception as e:
            raise DeliveryFailed(f"Notifier raised: {e}") from e
        if not sent:
            raise DeliveryFailed(f"Could not notify {', '.join(recipients) or 'anyone'}")

    def run_check_cycle_now(self) -> CycleResult:
        """Run a check cycle immediately and deliver any report."""
        result = self.engine.run_cycle()
        if result.report_ready:
            try:
                self.deliver(result.message)
                result.delivered = True
            except DeliveryFailed as e:
                # History keeps the reported versions, so this is not retried
                logger.error(f"Update notification not delivered: {e}")
                result.delivered = False
                result.error = str(e)
        return result

    def send_test_notification(self) -> None:
        self.deliver(TEST_MESSAGE)

    def update_settings(self, changes: Dict[str, object]) -> List[str]:
        """
        Validate and apply settings changes.

        Valid fields are saved even when others are rejected; rejected
        fields keep their previous value.

        Returns:
            Names of the fields that were changed

        Raises:
            ConfigurationInvalid: listing every rejected field
        """
        settings = self.settings.load()
        errors: Dict[str, str] = {}
        changed: List[str] = []

        if "frequency" in changes:
            frequency = changes["frequency"]
            if self.intervals.is_valid(frequency):
                if frequency != settings.frequency:
                    settings.frequency = frequency
                    changed.append("frequency")
            else:
                errors["frequency"] = "Invalid frequency entered"

        if "notify_to" in changes:
            try:
                recipients = parse_recipients(changes["notify_to"])
                if recipients != settings.notify_to:
                    settings.notify_to = recipients
                    changed.append("notify_to")
            except ValueError as e:
                errors["notify_to"] = str(e)

        if "notify_plugins" in changes:
            try:
                scope = CheckScope(int(changes["notify_plugins"]))
                if scope != settings.check_scope:
                    settings.check_scope = scope
                    changed.append("notify_plugins")
            except (TypeError, ValueError):
                errors["notify_plugins"] = "Check scope must be 0 (off), 1 (all) or 2 (active only)"

        if "hide_updates" in changes:
            try:
                hide = int(changes["hide_updates"])
            except (TypeError, ValueError):
                hide = -1
            if hide in (0, 1):
                if bool(hide) != settings.hide_updates:
                    settings.hide_updates = bool(hide)
                    changed.append("hide_updates")
            else:
                errors["hide_updates"] = "Hide updates must be 0 or 1"

        if changed:
            self.settings.save(settings)
            logger.info(f"Updated settings: {', '.join(changed)}")
            if "frequency" in changed:
                self.scheduler.reconcile(settings.frequency)

        if errors:
            raise ConfigurationInvalid(errors)
        return changed

    def status(self) -> dict:
        settings = self.settings.load()
        return {
            "frequency": settings.frequency,
            "notify_to": settings.notify_to,
            "check_scope": settings.check_scope.name.lower(),
            "hide_updates": settings.hide_updates,
            "last_check_time": settings.last_check_time,
            "notified": len(settings.notified),
            "scheduler": self.scheduler.get_status(),
        }


def build_source(config: AppConfig) -> UpdateSource:
    kind = config.get("source", "manifest")
    if kind == "wordpress_org":
        return WordPressOrgSource(
            config.manifest_path,
            config.platform_version,
            timeout=config.get("http_timeout", 15),
        )
    if kind != "manifest":
        logger.warning(f"Unknown source '{kind}', using manifest")
    return ManifestSource(config.manifest_path, config.platform_version)


def build_notifier(config: AppConfig) -> Notifier:
    kind = config.get("notifier", "email")
    if kind == "desktop":
        return DesktopNotifier()
    if kind == "log":
        return LogNotifier()
    if kind != "email":
        logger.warning(f"Unknown notifier '{kind}', using email")
    return EmailNotifier.from_config(config.smtp, config.site_url, config.site_name)


def build_backend(config: AppConfig) -> SchedulerBackend:
    if config.get("scheduler", "systemd") == "inprocess":
        return InProcessBackend()
    return SystemdTimerBackend()
