"""
Update Notice - Manifest Source
Reads installed components and their known upstream versions from JSON.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from update_notice.compat import votes_from_api
from update_notice.version import is_newer

from .base import (
    UpdateSource,
    ComponentInfo,
    CandidateUpdate,
    SourceUnavailable,
)

logger = logging.getLogger(__name__)


def load_manifest(path: Path) -> dict:
    """Read a component manifest; raises SourceUnavailable when unreadable."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        raise SourceUnavailable(f"Component manifest not found: {path}")
    except (json.JSONDecodeError, IOError) as e:
        raise SourceUnavailable(f"Failed to read component manifest {path}: {e}")
    if not isinstance(data, dict) or not isinstance(data.get("components", []), list):
        raise SourceUnavailable(f"Malformed component manifest: {path}")
    return data


def components_from_manifest(data: dict) -> List[ComponentInfo]:
    components = []
    for entry in data.get("components", []):
        try:
            components.append(ComponentInfo(
                id=entry["id"],
                name=entry.get("name") or entry["id"],
                installed_version=str(entry.get("version", "")),
                active=bool(entry.get("active", True)),
                slug=entry.get("slug"),
            ))
        except (KeyError, TypeError) as e:
            logger.warning(f"Skipping malformed manifest entry {entry!r}: {e}")
    return components


class ManifestSource(UpdateSource):
    """
    Update source backed by a JSON manifest.

    Manifest format::

        {
          "platform_version": "6.5",
          "components": [
            {"id": "akismet/akismet.php", "name": "Akismet", "version": "5.0",
             "active": true, "slug": "akismet",
             "update": {"new_version": "5.3",
                        "url": "https://wordpress.org/plugins/akismet/",
                        "tested": "6.5",
                        "compatibility": {"6.5": {"5.3": [80, 10, 8]}}}}
          ]
        }
    """

    def __init__(self, manifest_path: Path, platform_version: Optional[str] = None):
        self.manifest_path = Path(manifest_path)
        self._platform_version = platform_version

    @property
    def name(self) -> str:
        return "Manifest"

    def get_installed_components(self) -> List[ComponentInfo]:
        return components_from_manifest(load_manifest(self.manifest_path))

    def get_current_platform_version(self) -> str:
        if self._platform_version:
            return self._platform_version
        try:
            return str(load_manifest(self.manifest_path).get("platform_version", ""))
        except SourceUnavailable as e:
            logger.warning(f"Platform version unavailable: {e}")
            return ""

    def fetch_updates(self) -> List[CandidateUpdate]:
        data = load_manifest(self.manifest_path)
        updates = []
        for entry in data.get("components", []):
            update = entry.get("update")
            if not isinstance(update, dict) or "id" not in entry:
                continue
            installed = str(entry.get("version", ""))
            new_version = str(update.get("new_version", ""))
            if not new_version or not is_newer(new_version, installed):
                continue
            updates.append(CandidateUpdate(
                id=entry["id"],
                name=entry.get("name"),
                slug=entry.get("slug"),
                installed_version=installed,
                new_version=new_version,
                url=update.get("url", ""),
                tested=update.get("tested"),
                compatibility=votes_from_api(update.get("compatibility")),
            ))
        return updates
