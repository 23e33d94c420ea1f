"""
Update Notice - Command Line Interface
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from update_notice.config import AppConfig
from update_notice.engine import CycleOutcome
from update_notice.errors import ConfigurationInvalid, UpdateNoticeError
from update_notice.scheduler import InProcessBackend

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_file: Optional[Path], verbose: bool = False) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))
        except OSError as e:
            print(f"Cannot write log file {log_file}: {e}", file=sys.stderr)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="update-notice",
        description="Email notifications for outdated plugins.",
    )
    parser.add_argument("-c", "--config", type=Path, help="Path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("check", help="Run one check cycle now")
    sub.add_parser("run", help="Check on schedule inside this process")
    sub.add_parser("activate", help="Schedule the recurring check")
    sub.add_parser("deactivate", help="Remove the recurring check")
    sub.add_parser("status", help="Show settings and schedule")
    sub.add_parser("intervals", help="List available check frequencies")
    sub.add_parser("test-email", help="Send a test notification")

    configure = sub.add_parser("configure", help="Change settings")
    configure.add_argument("--frequency", help="Interval key, see 'intervals'")
    configure.add_argument("--notify-to", help="Comma separated email addresses")
    configure.add_argument("--scope", choices=["off", "all", "active"], help="Which plugins to check")
    configure.add_argument("--hide-updates", choices=["0", "1"], help="Hide update nag for non-admins")
    return parser


SCOPES = {"off": 0, "all": 1, "active": 2}


def _format_time(timestamp: Optional[float]) -> str:
    if not timestamp:
        return "Never"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d @ %H:%M")


def cmd_check(service) -> int:
    result = service.run_check_cycle_now()
    if result.outcome == CycleOutcome.REPORT_READY:
        print(f"Reported {len(result.reported)} update(s)"
              + ("" if result.delivered else " (delivery failed)"))
        return 0 if result.delivered else 1
    if result.outcome == CycleOutcome.SOURCE_UNAVAILABLE:
        print(f"Update source unavailable: {result.error}")
        return 1
    if result.outcome == CycleOutcome.BUSY:
        print("A check is already running")
        return 0
    print("Nothing new to report")
    return 0


def run_pending_checks(service, backend: InProcessBackend) -> Optional[float]:
    """
    One scheduler tick: follow the stored frequency, then run due checks.

    Returns:
        Seconds until the next scheduled check, or None if nothing is scheduled
    """
    # Settings may have been changed by another process since the last tick
    service.activate()
    backend.run_pending()
    return backend.idle_seconds


def cmd_run(service, backend: InProcessBackend) -> int:
    logger.info("Starting update notice scheduler")
    try:
        while True:
            idle = run_pending_checks(service, backend)
            time.sleep(min(max(idle if idle is not None else 60, 1), 60))
    except KeyboardInterrupt:
        logger.info("Stopping update notice scheduler")
    return 0


def cmd_activate(service) -> int:
    # An in-process schedule would be lost as soon as this command exits
    if isinstance(service.scheduler.backend, InProcessBackend):
        print("Nothing scheduled: the in-process scheduler only runs inside "
              "'update-notice run'. Start that instead, or set \"scheduler\": \"systemd\"")
        return 1
    service.activate()
    print("Update checks scheduled")
    return 0


def cmd_status(service) -> int:
    status = service.status()
    print(f"Last scan:   {_format_time(status['last_check_time'])}")
    print(f"Frequency:   {status['frequency']}")
    print(f"Notify to:   {', '.join(status['notify_to'])}")
    print(f"Scope:       {status['check_scope']}")
    print(f"Hide nag:    {'yes' if status['hide_updates'] else 'no'}")
    print(f"Notified:    {status['notified']} plugin(s)")
    scheduler = status["scheduler"]
    print(f"Scheduled:   {'yes' if scheduler['enabled'] else 'no'}")
    if scheduler["next_run"]:
        print(f"Next run:    {scheduler['next_run']}")
    return 0


def cmd_configure(service, args) -> int:
    changes = {}
    if args.frequency is not None:
        changes["frequency"] = args.frequency
    if args.notify_to is not None:
        changes["notify_to"] = args.notify_to
    if args.scope is not None:
        changes["notify_plugins"] = SCOPES[args.scope]
    if args.hide_updates is not None:
        changes["hide_updates"] = args.hide_updates
    try:
        changed = service.update_settings(changes)
    except ConfigurationInvalid as e:
        for field_name, message in e.errors.items():
            print(f"{field_name}: {message}", file=sys.stderr)
        return 1
    print(f"Updated: {', '.join(changed)}" if changed else "No changes")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = AppConfig.load(args.config)
    setup_logging(config.log_file, args.verbose)

    # Imported late so --help works without the service's dependencies loaded
    from update_notice.service import UpdateNotifier

    try:
        if args.command == "intervals":
            from update_notice.intervals import IntervalTable
            for interval in IntervalTable.with_extra(config.get("intervals")).list_intervals():
                print(f"{interval.key:<12} {interval.seconds:>8}s  {interval.display}")
            return 0

        backend = InProcessBackend() if args.command == "run" else None
        service = UpdateNotifier.from_config(config, backend=backend)

        if args.command == "check":
            return cmd_check(service)
        if args.command == "run":
            return cmd_run(service, backend)
        if args.command == "activate":
            return cmd_activate(service)
        if args.command == "deactivate":
            service.deactivate()
            print("Update checks unscheduled")
            return 0
        if args.command == "status":
            return cmd_status(service)
        if args.command == "configure":
            return cmd_configure(service, args)
        if args.command == "test-email":
            service.send_test_notification()
            print("Test notification sent")
            return 0
    except UpdateNoticeError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 1
