"""
Update Notice - Update Check Scheduler
Keeps exactly one recurring check task alive, matching the configured
frequency. Backends: in-process (``schedule``), systemd user timers, memory.
"""

import subprocess
import sys
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Optional

import schedule

from update_notice.errors import SchedulingError
from update_notice.intervals import IntervalTable

logger = logging.getLogger(__name__)

TASK_NAME = "update_notice_check"


class SchedulerBackend(ABC):
    """Host facility that fires a named task on a fixed interval."""

    @abstractmethod
    def schedule_recurring(self, task_name: str, first_fire_at: datetime, interval: int) -> None:
        """Create the task; raises SchedulingError on failure."""

    @abstractmethod
    def cancel(self, task_name: str) -> None:
        """Remove the task if present; raises SchedulingError on failure."""

    @abstractmethod
    def current_interval_for(self, task_name: str) -> Optional[int]:
        """Interval in seconds of the active task, or None."""

    def next_run_for(self, task_name: str) -> Optional[str]:
        """Human readable next fire time, when the backend knows it."""
        return None


@dataclass
class ScheduledTask:
    name: str
    next_fire: datetime
    interval: int


class MemoryBackend(SchedulerBackend):
    """Keeps tasks in a dictionary. Nothing ever fires on its own."""

    def __init__(self):
        self.tasks: Dict[str, ScheduledTask] = {}
        self.fail = False

    def schedule_recurring(self, task_name: str, first_fire_at: datetime, interval: int) -> None:
        if self.fail:
            raise SchedulingError(f"Cannot schedule {task_name}")
        self.tasks[task_name] = ScheduledTask(task_name, first_fire_at, interval)

    def cancel(self, task_name: str) -> None:
        self.tasks.pop(task_name, None)

    def current_interval_for(self, task_name: str) -> Optional[int]:
        task = self.tasks.get(task_name)
        return task.interval if task else None

    def next_run_for(self, task_name: str) -> Optional[str]:
        task = self.tasks.get(task_name)
        return task.next_fire.isoformat() if task else None


class InProcessBackend(SchedulerBackend):
    """
    Runs tasks inside this process with the ``schedule`` library.

    Handlers are registered per task name; ``run_pending()`` must be called
    from the owner's loop (see ``update-notice run``).
    """

    def __init__(self, registry: Optional[schedule.Scheduler] = None):
        self.registry = registry or schedule.Scheduler()
        self._handlers: Dict[str, Callable[[], object]] = {}

    def register_handler(self, task_name: str, handler: Callable[[], object]) -> None:
        self._handlers[task_name] = handler

    def _job(self, task_name: str) -> Optional[schedule.Job]:
        jobs = self.registry.get_jobs(task_name)
        return jobs[0] if jobs else None

    def schedule_recurring(self, task_name: str, first_fire_at: datetime, interval: int) -> None:
        handler = self._handlers.get(task_name)
        if handler is None:
            raise SchedulingError(f"No handler registered for {task_name}")
        job = self.registry.every(interval).seconds.do(handler).tag(task_name)
        job.next_run = first_fire_at
        logger.info(f"Scheduled {task_name} every {interval}s, first run {first_fire_at:%Y-%m-%d %H:%M:%S}")

    def cancel(self, task_name: str) -> None:
        self.registry.clear(task_name)

    def current_interval_for(self, task_name: str) -> Optional[int]:
        job = self._job(task_name)
        return job.interval if job else None

    def next_run_for(self, task_name: str) -> Optional[str]:
        job = self._job(task_name)
        return job.next_run.isoformat() if job and job.next_run else None

    def run_pending(self) -> None:
        self.registry.run_pending()

    @property
    def idle_seconds(self) -> Optional[float]:
        return self.registry.idle_seconds


class SystemdTimerBackend(SchedulerBackend):
    """Fires the check through a systemd user timer running ``update-notice check``."""

    SYSTEMD_USER_DIR = Path.home() / ".config" / "systemd" / "user"

    def __init__(self, unit_dir: Optional[Path] = None, command: Optional[str] = None):
        self.unit_dir = Path(unit_dir) if unit_dir else self.SYSTEMD_USER_DIR
        self.command = command or f"{sys.executable} -m update_notice check"

    def _service_file(self, task_name: str) -> Path:
        return self.unit_dir / f"{task_name}.service"

    def _timer_file(self, task_name: str) -> Path:
        return self.unit_dir / f"{task_name}.timer"

    def _systemctl(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["systemctl", "--user", *args],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise SchedulingError(f"systemctl {' '.join(args)} failed: {e}")

    def _write_units(self, task_name: str, interval: int) -> None:
        service_content = f"""[Unit]
Description=Update Notice - Check for Updates
After=network-online.target
Wants=network-online.target

[Service]
Type=oneshot
ExecStart={self.command}
StandardOutput=journal
StandardError=journal
"""
        timer_content = f"""[Unit]
Description=Update Notice - Check Timer

[Timer]
OnActiveSec={interval}s
OnUnitActiveSec={interval}s
Unit={task_name}.service

[Install]
WantedBy=timers.target
"""
        try:
            self.unit_dir.mkdir(parents=True, exist_ok=True)
            self._service_file(task_name).write_text(service_content)
            self._timer_file(task_name).write_text(timer_content)
            logger.info(f"Created timer file: {self._timer_file(task_name)}")
        except OSError as e:
            raise SchedulingError(f"Failed to write systemd units: {e}")

    def schedule_recurring(self, task_name: str, first_fire_at: datetime, interval: int) -> None:
        # OnActiveSec counts from timer start, which puts the first run at now + interval
        self._write_units(task_name, interval)
        self._systemctl("daemon-reload")
        result = self._systemctl("enable", "--now", f"{task_name}.timer")
        if result.returncode != 0:
            raise SchedulingError(f"Failed to enable timer: {result.stderr.strip()}")
        logger.info(f"Enabled {task_name}.timer every {interval}s")

    def cancel(self, task_name: str) -> None:
        if not self._timer_file(task_name).exists():
            return
        self._systemctl("disable", "--now", f"{task_name}.timer")
        try:
            self._timer_file(task_name).unlink()
            self._service_file(task_name).unlink(missing_ok=True)
        except OSError as e:
            raise SchedulingError(f"Failed to remove systemd units: {e}")
        self._systemctl("daemon-reload")
        logger.info(f"Disabled {task_name}.timer")

    def is_enabled(self, task_name: str) -> bool:
        try:
            return self._systemctl("is-enabled", f"{task_name}.timer").returncode == 0
        except SchedulingError:
            return False

    def current_interval_for(self, task_name: str) -> Optional[int]:
        timer_file = self._timer_file(task_name)
        if not timer_file.exists() or not self.is_enabled(task_name):
            return None
        for line in timer_file.read_text().splitlines():
            if line.startswith("OnUnitActiveSec="):
                value = line.split("=", 1)[1].strip().rstrip("s")
                try:
                    return int(value)
                except ValueError:
                    logger.warning(f"Unreadable interval in {timer_file}: {line}")
                    return None
        return None

    def next_run_for(self, task_name: str) -> Optional[str]:
        try:
            result = self._systemctl("show", f"{task_name}.timer", "--property=NextElapseUSecRealtime")
        except SchedulingError:
            return None
        if result.returncode == 0 and "=" in result.stdout:
            return result.stdout.strip().split("=", 1)[1] or None
        return None


class Scheduler:
    """Owns the lifecycle of the recurring check task."""

    def __init__(
        self,
        backend: SchedulerBackend,
        intervals: IntervalTable,
        task_name: str = TASK_NAME,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.backend = backend
        self.intervals = intervals
        self.task_name = task_name
        self._now = clock

    def reconcile(self, frequency: str) -> bool:
        """
        Make the scheduled task match ``frequency``.

        Returns:
            True if the task was (re)created, False if nothing changed
        """
        if not self.intervals.is_valid(frequency):
            logger.warning(f"Ignoring unknown frequency '{frequency}'")
            return False

        seconds = self.intervals.duration(frequency)
        if self.backend.current_interval_for(self.task_name) == seconds:
            return False

        # Never leave two tasks doing the same work
        self.cancel()
        first_fire_at = self._now() + timedelta(seconds=seconds)
        self.backend.schedule_recurring(self.task_name, first_fire_at, seconds)
        logger.info(f"Update check scheduled {frequency}")
        return True

    def cancel(self) -> None:
        self.backend.cancel(self.task_name)

    def get_status(self) -> dict:
        """Get scheduler status information."""
        interval = self.backend.current_interval_for(self.task_name)
        return {
            "task": self.task_name,
            "enabled": interval is not None,
            "frequency": self.intervals.key_for(interval) if interval else None,
            "next_run": self.backend.next_run_for(self.task_name),
        }
