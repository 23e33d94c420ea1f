"""
Update Notice - Core Package

Periodic plugin update checks with one consolidated notification per new
set of updates. Entry points: ``update_notice.service.UpdateNotifier`` and
the ``update-notice`` command.
"""

__version__ = "1.0.0"
