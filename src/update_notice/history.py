"""
Update Notice - Notification History
Remembers which version of each component has already been reported.
"""

import logging
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class NotificationHistory:
    """
    Per-component record of the last version sent to recipients.

    Wraps the ``notified`` mapping of the settings record; changes are made
    in place and persisted by whoever saves the settings.
    """

    def __init__(self, notified: Dict[str, str]):
        self._notified = notified

    def __len__(self) -> int:
        return len(self._notified)

    def __contains__(self, component_id: str) -> bool:
        return component_id in self._notified

    def get_version(self, component_id: str) -> Optional[str]:
        """Last notified version, or None if never reported."""
        return self._notified.get(component_id)

    def is_notified(self, component_id: str, version: str) -> bool:
        """True only when this exact version was already reported."""
        return self._notified.get(component_id) == version

    def set_version(self, component_id: str, version: str) -> None:
        self._notified[component_id] = version
        logger.debug(f"Marked {component_id} notified at {version}")

    def record(self, reported: Iterable) -> None:
        """Store ``{id: new_version}`` for every reported candidate."""
        for candidate in reported:
            self.set_version(candidate.id, candidate.new_version)

    def unreported(self, candidates: Iterable) -> List:
        """Candidates whose available version has not been reported yet."""
        return [c for c in candidates if not self.is_notified(c.id, c.new_version)]

    def clear(self) -> bool:
        """Forget everything; returns True if there was anything to forget."""
        if not self._notified:
            return False
        self._notified.clear()
        return True

    def get_all(self) -> Dict[str, str]:
        return dict(self._notified)
