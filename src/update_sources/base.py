"""
Update Notice - Update Source Base
Abstract base class for all update source plugins.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

from update_notice.compat import VoteTally
from update_notice.errors import SourceUnavailable
from update_notice.settings import CheckScope

logger = logging.getLogger(__name__)


@dataclass
class ComponentInfo:
    """Locally installed component."""
    id: str                          # Unique identifier (e.g., "akismet/akismet.php")
    name: str                        # Display name
    installed_version: str           # Currently installed version
    active: bool = True              # Enabled on the site
    slug: Optional[str] = None       # Directory slug (e.g., "akismet")


@dataclass
class CandidateUpdate:
    """A component with a newer version available upstream."""
    id: str
    installed_version: str
    new_version: str
    url: str                         # Detail page; changelog lives at url + "changelog/"
    name: Optional[str] = None
    slug: Optional[str] = None
    tested: Optional[str] = None     # Highest platform version the author tested
    compatibility: Dict[str, Dict[str, VoteTally]] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.name or self.slug or self.id

    @property
    def changelog_url(self) -> str:
        return f"{self.url}changelog/"


class UpdateSource(ABC):
    """
    Abstract base class for update sources.

    A source knows which components are installed and which of them have a
    newer version upstream. Scope filtering is done here so every source
    treats "active only" the same way.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of the source."""
        pass

    @abstractmethod
    def get_installed_components(self) -> List[ComponentInfo]:
        """
        Get the locally installed components.

        Raises:
            SourceUnavailable: if the inventory cannot be read
        """
        pass

    @abstractmethod
    def fetch_updates(self) -> List[CandidateUpdate]:
        """
        Get every installed component with an update available.

        Raises:
            SourceUnavailable: if upstream metadata cannot be fetched
        """
        pass

    @abstractmethod
    def get_current_platform_version(self) -> str:
        """Version of the platform the components run on."""
        pass

    def get_local_component_info(self, component_id: str) -> Optional[ComponentInfo]:
        """Local info for one component, or None if it is not installed."""
        for component in self.get_installed_components():
            if component.id == component_id:
                return component
        return None

    def active_component_ids(self) -> set:
        return {c.id for c in self.get_installed_components() if c.active}

    def list_available_updates(self, scope: CheckScope = CheckScope.ALL) -> List[CandidateUpdate]:
        """
        Candidate updates for the given scope.

        Args:
            scope: ALL for every installed component, ACTIVE for enabled ones

        Returns:
            List of CandidateUpdate, possibly empty
        """
        if scope == CheckScope.DISABLED:
            return []
        return self.apply_scope(self.fetch_updates(), scope)

    def apply_scope(self, updates: List[CandidateUpdate], scope: CheckScope) -> List[CandidateUpdate]:
        """Narrow an unscoped update list to the components the scope covers."""
        if scope == CheckScope.DISABLED:
            return []
        if scope == CheckScope.ACTIVE and updates:
            active = self.active_component_ids()
            skipped = [u.id for u in updates if u.id not in active]
            if skipped:
                logger.debug(f"Skipping inactive components: {', '.join(skipped)}")
            updates = [u for u in updates if u.id in active]

        logger.info(f"{self.name}: {len(updates)} update(s) available")
        return updates


__all__ = ["ComponentInfo", "CandidateUpdate", "UpdateSource", "SourceUnavailable", "VoteTally"]
