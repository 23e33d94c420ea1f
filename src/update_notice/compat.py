"""
Update Notice - Compatibility Estimator
"""

from typing import Dict, Mapping, NamedTuple, Optional

from update_notice.version import is_at_least

AUTHOR_CONFIRMED = "100% (according to author)"
UNKNOWN = "Unknown"


class VoteTally(NamedTuple):
    """Community "works" votes for one platform/update version pair."""
    percent: int
    works: int
    total: int


VoteTable = Mapping[str, Mapping[str, VoteTally]]


def estimate_compatibility(
    tested: Optional[str],
    current_platform_version: str,
    votes: Optional[VoteTable],
    platform_version: str,
    target_version: str,
) -> str:
    """
    Describe how likely an update is to work on the running platform.

    The author's "tested up to" wins when it covers the current platform
    version; otherwise the community vote for this platform/update pair is
    used; otherwise the result is unknown.
    """
    if tested and is_at_least(tested, current_platform_version):
        return AUTHOR_CONFIRMED

    entry = (votes or {}).get(platform_version, {}).get(target_version)
    if entry is not None:
        percent, works, total = entry
        return f"{percent}% ({works} out of {total})"

    return UNKNOWN


def votes_from_api(raw: Optional[dict]) -> Dict[str, Dict[str, VoteTally]]:
    """
    Convert the plugin directory's ``compatibility`` field.

    The directory lists each entry as ``[percent, total, works]``.
    """
    table: Dict[str, Dict[str, VoteTally]] = {}
    if not isinstance(raw, dict):
        return table
    for platform_version, by_update in raw.items():
        if not isinstance(by_update, dict):
            continue
        for update_version, entry in by_update.items():
            try:
                percent, total, works = (int(x) for x in list(entry)[:3])
            except (TypeError, ValueError):
                continue
            table.setdefault(str(platform_version), {})[str(update_version)] = VoteTally(percent, works, total)
    return table
