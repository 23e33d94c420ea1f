"""
Update Notice - Application Configuration
Host environment settings: site identity, paths, delivery and source choice.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "update-notice"
CACHE_DIR = Path.home() / ".cache" / "update-notice"
CONFIG_PATH = CONFIG_DIR / "config.json"


def default_config() -> dict:
    """Return default configuration."""
    return {
        "site_name": "My Site",
        "site_url": "http://localhost/",
        "admin_email": "admin@localhost.localdomain",
        "platform_name": "WordPress",
        "platform_version": "6.5",
        "settings_path": str(CONFIG_DIR / "settings.json"),
        "manifest_path": str(CONFIG_DIR / "components.json"),
        "state_dir": str(CACHE_DIR),
        "log_file": str(CACHE_DIR / "check.log"),
        "intervals": {},
        "source": "manifest",
        "notifier": "email",
        "scheduler": "systemd",
        "smtp": {
            "host": "localhost",
            "port": 25,
            "username": None,
            "password": None,
            "starttls": False,
            "timeout": 10,
        },
        "http_timeout": 15,
    }


def _merge(defaults: dict, loaded: dict) -> dict:
    """Overlay loaded values on defaults, one level into nested dicts."""
    merged = copy.deepcopy(defaults)
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


@dataclass
class AppConfig:
    """
    Loaded application configuration.

    Attributes mirror the JSON keys; anything missing from the file falls
    back to ``default_config()``.
    """
    data: dict = field(default_factory=default_config)
    path: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """Load configuration from file or use defaults."""
        config_path = Path(config_path) if config_path else CONFIG_PATH
        loaded = {}
        if config_path.exists():
            try:
                with open(config_path) as f:
                    loaded = json.load(f)
                if not isinstance(loaded, dict):
                    logger.warning(f"Ignoring config {config_path}: not a JSON object")
                    loaded = {}
            except (json.JSONDecodeError, IOError) as e:
                logger.warning(f"Failed to load config: {e}")
        return cls(data=_merge(default_config(), loaded), path=config_path)

    def save(self) -> None:
        """Save current configuration to file."""
        if self.path:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w') as f:
                json.dump(self.data, f, indent=2)

    def get(self, key: str, default=None):
        return self.data.get(key, default)

    @property
    def site_name(self) -> str:
        return self.data["site_name"]

    @property
    def site_url(self) -> str:
        return self.data["site_url"]

    @property
    def admin_url(self) -> str:
        return self.site_url.rstrip("/") + "/wp-admin/"

    @property
    def admin_email(self) -> str:
        return self.data["admin_email"]

    @property
    def platform_name(self) -> str:
        return self.data["platform_name"]

    @property
    def platform_version(self) -> str:
        return str(self.data["platform_version"])

    @property
    def settings_path(self) -> Path:
        return Path(self.data["settings_path"]).expanduser()

    @property
    def manifest_path(self) -> Path:
        return Path(self.data["manifest_path"]).expanduser()

    @property
    def state_dir(self) -> Path:
        return Path(self.data["state_dir"]).expanduser()

    @property
    def log_file(self) -> Path:
        return Path(self.data["log_file"]).expanduser()

    @property
    def smtp(self) -> dict:
        return self.data["smtp"]
