"""
Notification Aggregator Module
Single Responsibility: Hold user-facing notices for one session

Notices are kept in insertion order (oldest first); stacking them visually is
the presentation layer's job. A notice with a positive duration owns exactly
one removal timer, cancelled if the notice is removed first.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from insight_runner.models.notification import Notification, NotificationAction, Severity
from insight_runner.utils.logging_config import get_logger

logger = get_logger(__name__)


class NotificationAggregator:
    """
    Mutex-guarded collection of notifications with timed auto-dismiss.

    Create one per session and ``close()`` it when the session ends; UI code
    reads ``list()`` snapshots and never touches the collection directly.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._notifications: Dict[str, Notification] = {}
        self._timers: Dict[str, threading.Timer] = {}
        self._closed = False

    def add(
        self,
        severity: Severity,
        title: str,
        message: str,
        duration_ms: Optional[int] = None,
        action: Optional[NotificationAction] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Adds a notification at the end of the visible sequence.

        Args:
            severity: info, success, warning or error
            title: Short heading
            message: Body text
            duration_ms: Auto-dismiss after this many milliseconds; None or 0 keeps
                the notice until removed
            action: Optional label + callback/url offered to the user
            metadata: Free-form context for the presentation layer

        Returns:
            The new notification's id
        """
        notification = Notification(
            notification_id=f"notif-{uuid.uuid4().hex}",
            severity=severity,
            title=title,
            message=message,
            created_at=datetime.now(timezone.utc),
            duration_ms=duration_ms,
            action=action,
            metadata=metadata or {},
        )
        notification_id = notification.notification_id

        with self._lock:
            if self._closed:
                raise RuntimeError("NotificationAggregator is closed")
            self._notifications[notification_id] = notification

            if notification.auto_dismiss:
                timer = threading.Timer(
                    notification.duration_ms / 1000.0,
                    self._expire,
                    args=(notification_id,),
                )
                timer.daemon = True
                self._timers[notification_id] = timer
                timer.start()

        logger.debug(
            f"Added {severity} notification {notification_id}: {title}",
            extra={"duration_ms": duration_ms},
        )
        return notification_id

    def remove(self, notification_id: str) -> None:
        """Removes a notification. Unknown ids are ignored."""
        with self._lock:
            self._notifications.pop(notification_id, None)
            timer = self._timers.pop(notification_id, None)
        if timer is not None:
            timer.cancel()

    def clear_all(self) -> None:
        """Removes every notification and cancels all pending timers"""
        with self._lock:
            self._notifications.clear()
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def list(self) -> List[Notification]:
        """Snapshot for rendering, oldest first"""
        with self._lock:
            return list(self._notifications.values())

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            return self._notifications.get(notification_id)

    def invoke_action(self, notification_id: str) -> bool:
        """
        Runs a notification's action callback on explicit user request.

        Returns:
            True if a callback ran, False if the notice is gone or has none
        """
        notification = self.get(notification_id)
        if notification is None or notification.action is None:
            return False
        if notification.action.callback is None:
            return False

        # Outside the lock: callbacks commonly add or remove notices
        notification.action.callback()
        return True

    def _expire(self, notification_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(notification_id, None)
            if timer is None:
                # Removed (or cleared) after this timer was already firing
                return
            self._notifications.pop(notification_id, None)
        logger.debug(f"Auto-dismissed notification {notification_id}")

    def close(self) -> None:
        """Ends the session: drops every notice and refuses further adds"""
        self.clear_all()
        with self._lock:
            self._closed = True

    def __len__(self) -> int:
        with self._lock:
            return len(self._notifications)

    def __enter__(self) -> "NotificationAggregator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
