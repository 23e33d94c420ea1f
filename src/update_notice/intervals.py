"""
Update Notice - Interval Table
Available check frequencies, sorted by duration.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union


@dataclass(frozen=True)
class Interval:
    """A named recurrence interval."""
    key: str
    seconds: int
    display: str


# Built-in schedules of the host, in registration order
DEFAULT_INTERVALS: Dict[str, dict] = {
    "hourly": {"interval": 3600, "display": "Once Hourly"},
    "twicedaily": {"interval": 43200, "display": "Twice Daily"},
    "daily": {"interval": 86400, "display": "Once Daily"},
    "weekly": {"interval": 604800, "display": "Once Weekly"},
}


class IntervalTable:
    """
    Sorts and validates the schedules offered by the host.

    The registry maps a key to ``{"interval": seconds, "display": label}``,
    the same shape the host uses for its own schedule list.
    """

    def __init__(self, registry: Optional[Dict[str, Union[dict, int]]] = None):
        self._intervals: List[Interval] = []
        for key, entry in (registry if registry is not None else DEFAULT_INTERVALS).items():
            if isinstance(entry, dict):
                seconds = int(entry["interval"])
                display = entry.get("display", key)
            else:
                seconds = int(entry)
                display = key
            if seconds <= 0:
                raise ValueError(f"Interval '{key}' must be positive, got {seconds}")
            self._intervals.append(Interval(key, seconds, display))
        # sorted() is stable, so ties keep registration order
        self._intervals = sorted(self._intervals, key=lambda i: i.seconds)
        self._by_key = {i.key: i for i in self._intervals}

    @classmethod
    def with_extra(cls, extra: Optional[Dict[str, Union[dict, int]]]) -> "IntervalTable":
        """Default schedules plus any host-provided additions."""
        registry: Dict[str, Union[dict, int]] = dict(DEFAULT_INTERVALS)
        registry.update(extra or {})
        return cls(registry)

    def list_intervals(self) -> List[Interval]:
        return list(self._intervals)

    def keys(self) -> List[str]:
        return [i.key for i in self._intervals]

    def is_valid(self, key: str) -> bool:
        return isinstance(key, str) and key in self._by_key

    def get(self, key: str) -> Optional[Interval]:
        return self._by_key.get(key)

    def duration(self, key: str) -> int:
        """Seconds for a key; raises KeyError for unknown keys."""
        return self._by_key[key].seconds

    def key_for(self, seconds: int) -> Optional[str]:
        """First key whose duration is exactly ``seconds``."""
        for interval in self._intervals:
            if interval.seconds == seconds:
                return interval.key
        return None
