"""
Notification Models
User-facing notices held by the NotificationAggregator
"""

from datetime import datetime
from typing import Any, Callable, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["info", "success", "warning", "error"]


class NotificationAction(BaseModel):
    """Optional user action shown next to a notification"""

    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str = Field(min_length=1)
    callback: Optional[Callable[[], Any]] = None
    url: Optional[str] = None


class Notification(BaseModel):
    """A single notice. Never persisted beyond process lifetime."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    notification_id: str
    severity: Severity
    title: str
    message: str
    created_at: datetime
    # None or 0 means the notice stays until removed
    duration_ms: Optional[int] = Field(default=None, ge=0)
    action: Optional[NotificationAction] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def auto_dismiss(self) -> bool:
        return bool(self.duration_ms)
