"""
Update Notice - Settings Storage
Persistent configuration record, schema migration and the store interface.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional

from update_notice.errors import PersistenceFailed

logger = logging.getLogger(__name__)

SETTINGS_FIELD = "settings"
SETTINGS_VERSION_FIELD = "settings_version"
SETTINGS_VERSION = "5.0"

EMAIL_RE = re.compile(r"^[A-Za-z0-9!#$%&'*+/=?^_`{|}~.-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+$")


class _NotSet:
    """Sentinel returned by stores for keys that were never written."""

    def __repr__(self):
        return "NOT_SET"

    def __bool__(self):
        return False


NOT_SET = _NotSet()


class CheckScope(IntEnum):
    """Which installed components take part in a check."""
    DISABLED = 0
    ALL = 1
    ACTIVE = 2


class SettingsStore(ABC):
    """Durable key-value persistence."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the stored value or ``NOT_SET``."""

    @abstractmethod
    def set(self, key: str, value: Any) -> bool:
        """Store a value; returns False when the write failed."""


class MemorySettingsStore(SettingsStore):
    """Dictionary-backed store, used for tests and embedding."""

    def __init__(self, initial: Optional[dict] = None):
        self._data: Dict[str, Any] = json.loads(json.dumps(initial or {}))
        self.fail_writes = False

    def get(self, key: str) -> Any:
        if key not in self._data:
            return NOT_SET
        # Hand out copies so callers never mutate stored state in place
        return json.loads(json.dumps(self._data[key]))

    def set(self, key: str, value: Any) -> bool:
        if self.fail_writes:
            return False
        self._data[key] = json.loads(json.dumps(value))
        return True


class JsonFileSettingsStore(SettingsStore):
    """
    Settings persisted in a single JSON file.

    The file is re-read on every ``get`` so a running daemon picks up
    changes written by another process (e.g. ``update-notice configure``).
    """

    def __init__(self, path: Path):
        self._store_path = Path(path)

    def _load(self) -> dict:
        """Load stored settings from disk."""
        if not self._store_path.exists():
            return {}
        try:
            data = json.loads(self._store_path.read_text())
            return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to load settings store: {e}")
            return {}

    def get(self, key: str) -> Any:
        data = self._load()
        return data[key] if key in data else NOT_SET

    def set(self, key: str, value: Any) -> bool:
        data = self._load()
        data[key] = value
        tmp_path = self._store_path.with_suffix(".tmp")
        try:
            self._store_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2))
            tmp_path.replace(self._store_path)
            return True
        except (IOError, OSError, TypeError) as e:
            logger.error(f"Failed to save settings store: {e}")
            return False


def is_email(address: str) -> bool:
    return bool(address) and len(address) <= 254 and EMAIL_RE.match(address) is not None


def parse_recipients(value) -> List[str]:
    """
    Split a comma separated recipient string (or list) into addresses.

    Raises ValueError naming the first invalid address.
    """
    if isinstance(value, str):
        parts = value.split(",")
    else:
        parts = list(value or [])
    recipients = [p.strip() for p in parts if p and p.strip()]
    if not recipients:
        raise ValueError("No email to address entered")
    for address in recipients:
        if not is_email(address):
            raise ValueError(f"Invalid email address: {address}")
    return recipients


def default_settings(admin_email: str) -> dict:
    """Defaults for the persisted settings record."""
    return {
        "frequency": "hourly",
        "notify_to": admin_email,
        "notify_plugins": int(CheckScope.ALL),
        "hide_updates": 1,
        "notified": {"plugin": {}},
        "last_check_time": None,
    }


def migrate_settings(store: SettingsStore, defaults: dict) -> bool:
    """
    Bring stored settings up to the current schema version.

    Obsolete keys are dropped and new keys are added with their defaults;
    values already set are left alone. Safe to call on every start.

    Returns:
        True if the stored record was rewritten
    """
    stored_version = store.get(SETTINGS_VERSION_FIELD)
    if stored_version == SETTINGS_VERSION:
        return False

    options = store.get(SETTINGS_FIELD)
    if not isinstance(options, dict):
        options = {}

    kept = {k: v for k, v in options.items() if k in defaults}
    migrated = dict(defaults)
    migrated.update(kept)

    dropped = sorted(set(options) - set(defaults))
    if dropped:
        logger.info(f"Dropping obsolete settings: {', '.join(dropped)}")

    if not store.set(SETTINGS_FIELD, migrated):
        raise PersistenceFailed("Could not write migrated settings")
    if not store.set(SETTINGS_VERSION_FIELD, SETTINGS_VERSION):
        raise PersistenceFailed("Could not write settings version")
    logger.info(f"Migrated settings from version {stored_version or 'none'} to {SETTINGS_VERSION}")
    return True


@dataclass
class Settings:
    """The configuration record in typed form."""
    frequency: str = "hourly"
    notify_to: List[str] = field(default_factory=list)
    check_scope: CheckScope = CheckScope.ALL
    hide_updates: bool = True
    notified: Dict[str, str] = field(default_factory=dict)
    last_check_time: Optional[float] = None

    @classmethod
    def from_record(cls, record: dict) -> "Settings":
        notify_to = record.get("notify_to") or []
        if isinstance(notify_to, str):
            notify_to = [a.strip() for a in notify_to.split(",") if a.strip()]
        try:
            scope = CheckScope(int(record.get("notify_plugins", CheckScope.ALL)))
        except (TypeError, ValueError):
            logger.warning(f"Unknown check scope {record.get('notify_plugins')!r}, using ALL")
            scope = CheckScope.ALL
        notified = record.get("notified") or {}
        if isinstance(notified, dict):
            notified = notified.get("plugin") or {}
        if not isinstance(notified, dict):
            logger.warning(f"Ignoring malformed notification history {notified!r}")
            notified = {}
        return cls(
            frequency=record.get("frequency", "hourly"),
            notify_to=list(notify_to),
            check_scope=scope,
            hide_updates=bool(record.get("hide_updates", 1)),
            notified={str(k): str(v) for k, v in notified.items()},
            last_check_time=record.get("last_check_time"),
        )

    def to_record(self) -> dict:
        return {
            "frequency": self.frequency,
            "notify_to": ",".join(self.notify_to),
            "notify_plugins": int(self.check_scope),
            "hide_updates": 1 if self.hide_updates else 0,
            "notified": {"plugin": dict(self.notified)},
            "last_check_time": self.last_check_time,
        }


class SettingsManager:
    """Loads and saves the settings record through a ``SettingsStore``."""

    def __init__(self, store: SettingsStore, admin_email: str):
        self.store = store
        self.defaults = default_settings(admin_email)

    def migrate(self) -> bool:
        return migrate_settings(self.store, self.defaults)

    def load(self) -> Settings:
        record = self.store.get(SETTINGS_FIELD)
        if not isinstance(record, dict):
            record = {}
        merged = dict(self.defaults)
        merged.update({k: v for k, v in record.items() if k in self.defaults})
        return Settings.from_record(merged)

    def save(self, settings: Settings) -> None:
        """Persist settings; raises PersistenceFailed when the store refuses."""
        if not self.store.set(SETTINGS_FIELD, settings.to_record()):
            raise PersistenceFailed("Settings store rejected the write")
