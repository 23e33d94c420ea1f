"""
Update Notice - Notification Engine
Runs one check cycle: fetch candidate updates, drop the ones already
reported, format a report and remember what was reported.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from update_sources.base import CandidateUpdate, UpdateSource

from update_notice.compat import estimate_compatibility
from update_notice.errors import PersistenceFailed, SourceUnavailable
from update_notice.history import NotificationHistory
from update_notice.locking import single_flight
from update_notice.scheduler import TASK_NAME
from update_notice.settings import CheckScope, Settings, SettingsManager
from update_notice.version import strip_suffix

logger = logging.getLogger(__name__)

CandidateFilter = Callable[[List[CandidateUpdate]], List[CandidateUpdate]]


class CycleOutcome(Enum):
    """How a check cycle ended."""
    NOTHING_TO_REPORT = "nothing_to_report"
    REPORT_READY = "report_ready"
    SOURCE_UNAVAILABLE = "source_unavailable"
    BUSY = "busy"


@dataclass
class CycleResult:
    """Result of one check cycle."""
    outcome: CycleOutcome
    message: str = ""
    reported: List[CandidateUpdate] = field(default_factory=list)
    delivered: Optional[bool] = None
    error: Optional[str] = None

    @property
    def report_ready(self) -> bool:
        return self.outcome == CycleOutcome.REPORT_READY


class NotificationEngine:
    """
    Check-and-notify core.

    Filters registered at construction run in order after the
    already-notified filter, each taking and returning a candidate list.
    """

    def __init__(
        self,
        settings: SettingsManager,
        source: UpdateSource,
        filters: Optional[Sequence[CandidateFilter]] = None,
        site_url: str = "",
        admin_url: str = "",
        platform_name: str = "WordPress",
        lock_dir: Optional[Path] = None,
        task_name: str = TASK_NAME,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.source = source
        self.filters: List[CandidateFilter] = list(filters or [])
        self.site_url = site_url
        self.admin_url = admin_url
        self.platform_name = platform_name
        self.lock_dir = lock_dir
        self.task_name = task_name
        self._now = clock

    def add_filter(self, candidate_filter: CandidateFilter) -> None:
        self.filters.append(candidate_filter)

    def run_cycle(self) -> CycleResult:
        """
        Run one check cycle.

        A fire that overlaps a running cycle is dropped with outcome BUSY.
        Otherwise the last check time is recorded however the cycle ends.

        Raises:
            PersistenceFailed: if the notification history could not be saved
        """
        with single_flight(self.task_name, self.lock_dir) as acquired:
            if not acquired:
                logger.info("Check cycle already in progress, skipping")
                return CycleResult(CycleOutcome.BUSY)
            try:
                return self._check(self.settings.load())
            finally:
                self.log_check_time()

    def _check(self, settings: Settings) -> CycleResult:
        if settings.check_scope == CheckScope.DISABLED:
            logger.info("Update checks disabled")
            return CycleResult(CycleOutcome.NOTHING_TO_REPORT)

        try:
            outstanding = self.source.fetch_updates()
            candidates = self.source.apply_scope(outstanding, settings.check_scope)
        except SourceUnavailable as e:
            logger.warning(f"Update source unavailable, skipping this cycle: {e}")
            return CycleResult(CycleOutcome.SOURCE_UNAVAILABLE, error=str(e))

        history = NotificationHistory(settings.notified)

        # Reset only when nothing is outstanding for any component, in or out of scope
        if not outstanding:
            if history.clear():
                logger.info("Everything up to date, clearing notification history")
                self._save_history(history)
            return CycleResult(CycleOutcome.NOTHING_TO_REPORT)

        if not candidates:
            logger.info(f"{len(outstanding)} update(s) outside the check scope")
            return CycleResult(CycleOutcome.NOTHING_TO_REPORT)

        pending = self.filter_candidates(candidates, history)
        if not pending:
            logger.info(f"{len(candidates)} update(s) already notified")
            return CycleResult(CycleOutcome.NOTHING_TO_REPORT)

        message = self.build_message(pending)
        history.record(pending)
        self._save_history(history)
        logger.info(f"Report ready for {len(pending)} update(s)")
        return CycleResult(CycleOutcome.REPORT_READY, message=message, reported=pending)

    def filter_candidates(
        self, candidates: List[CandidateUpdate], history: NotificationHistory
    ) -> List[CandidateUpdate]:
        """Drop already-notified versions, then apply registered filters."""
        pending = history.unreported(candidates)
        for candidate_filter in self.filters:
            if not pending:
                break
            pending = list(candidate_filter(pending))
        return pending

    def _save_history(self, history: NotificationHistory) -> None:
        # Reload so settings changed while the cycle ran are not overwritten
        current = self.settings.load()
        current.notified = history.get_all()
        self.settings.save(current)

    def log_check_time(self) -> None:
        """Record the end of a cycle. Failures are logged, not raised."""
        try:
            current = self.settings.load()
            current.last_check_time = self._now()
            self.settings.save(current)
        except PersistenceFailed as e:
            logger.error(f"Could not record check time: {e}")

    def format_candidate(self, candidate: CandidateUpdate, platform_version: str) -> str:
        name = candidate.display_name
        installed = candidate.installed_version
        try:
            local = self.source.get_local_component_info(candidate.id)
        except SourceUnavailable as e:
            logger.warning(f"No local info for {candidate.id}: {e}")
            local = None
        if local is not None:
            name = local.name or name
            installed = local.installed_version or installed

        compat = estimate_compatibility(
            candidate.tested,
            platform_version,
            candidate.compatibility,
            platform_version,
            candidate.new_version,
        )
        shown_version = strip_suffix(platform_version)
        return (
            f"\nPlugin: {name} is out of date. "
            f"Please update from version {installed} to {candidate.new_version}\n"
            f"\tDetails: {candidate.url}\n"
            f"\tChangelog: {candidate.changelog_url}\n"
            f"\tCompatibility: Compatibility with {self.platform_name} {shown_version}: {compat}\n"
        )

    def format_report(self, candidates: List[CandidateUpdate]) -> str:
        platform_version = self.source.get_current_platform_version()
        ordered = sorted(candidates, key=lambda c: (c.display_name.lower(), c.id))
        return "".join(self.format_candidate(c, platform_version) for c in ordered)

    def build_message(self, candidates: List[CandidateUpdate]) -> str:
        return (
            f"There are updates available for {self.site_url}\n"
            f"{self.format_report(candidates)}\n"
            f"Update these plugins: {self.admin_url}update-core.php"
        )
