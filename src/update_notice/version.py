"""
Update Notice - Version Comparison Utility
Plugin and platform version ordering shared by the engine and the sources.

PEP 440 strings are ordered by ``packaging``. Anything else (WordPress
nightlies such as ``6.5-alpha-57000-src``) is split into a numeric release
part and a qualifier; a qualified version sorts below its plain release.
"""

import re
import logging
from typing import Tuple

from packaging.version import Version, InvalidVersion

logger = logging.getLogger(__name__)

_RELEASE_RE = re.compile(r'^v?(\d+(?:\.\d+)*)(.*)$')

# Qualifier order; a bare release ranks between "rc" and "pl"
_QUALIFIER_RANK = {
    "dev": 0,
    "alpha": 1, "a": 1,
    "beta": 2, "b": 2,
    "rc": 3,
    "pl": 5, "p": 5,
}
_RELEASE_RANK = 4
_UNKNOWN_QUALIFIER_RANK = -1


def split_version(version: str) -> Tuple[Tuple[int, ...], str]:
    """
    Split a version string into its release numbers and qualifier.

    Examples:
        "5.10.1"              -> ((5, 10, 1), "")
        "v1.2.3"              -> ((1, 2, 3), "")
        "6.5-alpha-57000-src" -> ((6, 5), "alpha-57000-src")
        "unknown"             -> ((0,), "")
    """
    text = (version or "").strip().lower()
    match = _RELEASE_RE.match(text)
    if not match:
        return (0,), ""
    release = tuple(int(p) for p in match.group(1).split("."))
    return release, match.group(2).lstrip("-._+")


def strip_suffix(version: str) -> str:
    """Drop a '-beta1' / '-RC2' style suffix, leaving the release part."""
    return re.sub(r'-.*$', '', version or "")


def _qualifier_key(qualifier: str) -> Tuple[int, Tuple[int, ...]]:
    if not qualifier:
        return _RELEASE_RANK, ()
    word = re.match(r'[a-z]*', qualifier).group(0)
    rank = _QUALIFIER_RANK.get(word, _UNKNOWN_QUALIFIER_RANK)
    return rank, tuple(int(n) for n in re.findall(r'\d+', qualifier))


def _fallback_key(version: str, width: int) -> tuple:
    release, qualifier = split_version(version)
    padded = release + (0,) * (width - len(release))
    return padded, _qualifier_key(qualifier)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_versions(v1: str, v2: str) -> int:
    """
    Compare two version strings.

    Returns:
        1 if v1 > v2, -1 if v1 < v2, 0 if equal
    """
    try:
        return _cmp(Version((v1 or "").lstrip('v')), Version((v2 or "").lstrip('v')))
    except InvalidVersion:
        logger.debug(f"Non PEP 440 versions {v1!r}/{v2!r}, comparing release parts")

    width = max(len(split_version(v1)[0]), len(split_version(v2)[0]))
    return _cmp(_fallback_key(v1, width), _fallback_key(v2, width))


def is_newer(new_version: str, current_version: str) -> bool:
    """Check if new_version is newer than current_version."""
    return compare_versions(new_version, current_version) > 0


def is_at_least(version: str, than: str) -> bool:
    """Check if version is newer than or equal to 'than'."""
    return compare_versions(version, than) >= 0
