"""
Update Notice - Update Sources Package
"""

from update_sources.base import (
    UpdateSource,
    ComponentInfo,
    CandidateUpdate,
    SourceUnavailable,
)
from update_sources.manifest import ManifestSource
from update_sources.wordpress_org import WordPressOrgSource

__all__ = [
    "UpdateSource",
    "ComponentInfo",
    "CandidateUpdate",
    "SourceUnavailable",
    "ManifestSource",
    "WordPressOrgSource",
]
