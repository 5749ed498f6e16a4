"""
Notifications Module
"""

from .aggregator import NotificationAggregator
from .run_notices import notify_retry_result, notify_run_failed, notify_run_report

__all__ = [
    "NotificationAggregator",
    "notify_retry_result",
    "notify_run_failed",
    "notify_run_report",
]
