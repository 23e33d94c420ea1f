"""
Update Notice - Exceptions
"""

from typing import Dict


class UpdateNoticeError(Exception):
    """Base class for all update notice errors."""


class ConfigurationInvalid(UpdateNoticeError):
    """One or more submitted settings were rejected; prior values are kept."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class SourceUnavailable(UpdateNoticeError):
    """The update source could not produce a candidate list."""


class DeliveryFailed(UpdateNoticeError):
    """The notifier could not deliver a report."""


class PersistenceFailed(UpdateNoticeError):
    """The settings store refused a write."""


class SchedulingError(UpdateNoticeError):
    """The scheduler backend could not create or remove the recurring task."""
