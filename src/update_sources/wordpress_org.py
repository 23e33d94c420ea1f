"""
Update Notice - WordPress.org Source
Checks installed plugins against the wordpress.org plugin directory.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import requests

from update_notice.compat import votes_from_api

from .base import (
    UpdateSource,
    ComponentInfo,
    CandidateUpdate,
    SourceUnavailable,
)
from .manifest import load_manifest, components_from_manifest

logger = logging.getLogger(__name__)


class WordPressOrgSource(UpdateSource):
    """Update source for plugins hosted in the wordpress.org directory."""

    UPDATE_CHECK_API = "https://api.wordpress.org/plugins/update-check/1.1/"
    PLUGIN_INFO_API = "https://api.wordpress.org/plugins/info/1.2/"

    def __init__(
        self,
        manifest_path: Path,
        platform_version: str,
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the wordpress.org source.

        Args:
            manifest_path: JSON manifest listing installed plugins
            platform_version: Running WordPress version
            timeout: Per-request timeout in seconds
            session: requests session (injected in tests)
        """
        self.manifest_path = Path(manifest_path)
        self.platform_version = platform_version
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", f"WordPress/{platform_version}; UpdateNotice/1.0")

    @property
    def name(self) -> str:
        return "WordPress.org"

    def get_installed_components(self) -> List[ComponentInfo]:
        return components_from_manifest(load_manifest(self.manifest_path))

    def get_current_platform_version(self) -> str:
        return self.platform_version

    def _request_update_check(self, components: List[ComponentInfo]) -> dict:
        payload = {
            "plugins": {c.id: {"Name": c.name, "Version": c.installed_version} for c in components},
            "active": [c.id for c in components if c.active],
        }
        try:
            response = self.session.post(
                self.UPDATE_CHECK_API,
                data={
                    "plugins": json.dumps(payload),
                    "translations": json.dumps([]),
                    "locale": json.dumps([]),
                    "all": "true",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise SourceUnavailable(f"Plugin update check failed: {e}")
        except ValueError as e:
            raise SourceUnavailable(f"Plugin update check returned invalid JSON: {e}")
        if not isinstance(data, dict):
            raise SourceUnavailable(f"Unexpected plugin update check reply: {type(data).__name__}")
        return data

    def _fetch_plugin_info(self, slug: str) -> dict:
        """Directory info for one plugin; empty dict on failure."""
        try:
            response = self.session.get(
                self.PLUGIN_INFO_API,
                params={
                    "action": "plugin_information",
                    "request[slug]": slug,
                    "request[fields][compatibility]": 1,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            info = response.json()
            return info if isinstance(info, dict) else {}
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Could not fetch plugin info for {slug}: {e}")
            return {}

    def fetch_updates(self) -> List[CandidateUpdate]:
        components = self.get_installed_components()
        if not components:
            return []

        result = self._request_update_check(components)
        response = result.get("plugins") or {}
        if not isinstance(response, dict):
            # The API answers with [] instead of {} when nothing is outdated
            response = {}

        by_id = {c.id: c for c in components}
        updates = []
        for plugin_id, data in response.items():
            local = by_id.get(plugin_id)
            if local is None or not isinstance(data, dict):
                continue
            slug = data.get("slug") or local.slug or plugin_id.split("/")[0]
            info = self._fetch_plugin_info(slug)
            updates.append(CandidateUpdate(
                id=plugin_id,
                name=local.name,
                slug=slug,
                installed_version=local.installed_version,
                new_version=str(data.get("new_version", "")),
                url=data.get("url", ""),
                tested=info.get("tested") or data.get("tested"),
                compatibility=votes_from_api(info.get("compatibility")),
            ))
        return updates
