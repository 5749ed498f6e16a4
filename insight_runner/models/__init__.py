"""
Insight Runner - Data Models
"""

from .notification import Notification, NotificationAction, Severity
from .run import (
    Outcome,
    RetryResult,
    RunReport,
    Tenant,
    TriggerSource,
    WorkResult,
)

__all__ = [
    "Notification",
    "NotificationAction",
    "Severity",
    "Outcome",
    "RetryResult",
    "RunReport",
    "Tenant",
    "TriggerSource",
    "WorkResult",
]
