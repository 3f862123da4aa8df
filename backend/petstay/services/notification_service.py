"""
Notification delivery for booking and wallet events.

Delivery is fire-and-forget: callers hand events to a sink and never fail a
settlement step because a notification could not be delivered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
import threading
from typing import List, Optional, Protocol, runtime_checkable

import pytz

from ..core.enums import NotificationType

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        content: str,
        link: Optional[str] = None,
    ) -> None: ...

    def notify_admins(
        self,
        type: NotificationType,
        title: str,
        content: str,
        link: Optional[str] = None,
    ) -> None: ...


@dataclass(frozen=True)
class Notification:
    user_id: Optional[str]
    type: NotificationType
    title: str
    content: str
    link: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(pytz.UTC))


class NotificationService:
    """
    Default sink: logs every event and keeps a bounded in-process outbox
    that a delivery worker (or a test) can drain.
    """

    def __init__(self, max_outbox: int = 1000):
        self._lock = threading.Lock()
        self._outbox: List[Notification] = []
        self._max_outbox = max_outbox

    def _push(self, notification: Notification) -> None:
        with self._lock:
            self._outbox.append(notification)
            overflow = len(self._outbox) - self._max_outbox
            if overflow > 0:
                del self._outbox[:overflow]
        logger.info(
            "notification_queued",
            extra={
                "user_id": notification.user_id,
                "notification_type": notification.type.value,
                "title": notification.title,
            },
        )

    def notify(
        self,
        user_id: str,
        type: NotificationType,
        title: str,
        content: str,
        link: Optional[str] = None,
    ) -> None:
        self._push(Notification(user_id, NotificationType(type), title, content, link))

    def notify_admins(
        self,
        type: NotificationType,
        title: str,
        content: str,
        link: Optional[str] = None,
    ) -> None:
        self._push(Notification(None, NotificationType(type), title, content, link))

    def sent_to(self, user_id: str) -> List[Notification]:
        with self._lock:
            return [n for n in self._outbox if n.user_id == user_id]

    def drain(self) -> List[Notification]:
        with self._lock:
            drained, self._outbox = self._outbox, []
        return drained
