"""
Admin and end-user notifications.

The catalog store only ever calls ``notify``; reading, dismissing and
displaying belong to whoever holds the NotificationCenter.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Audience(str, Enum):
    ADMIN = "admin"
    USER = "user"


@dataclass
class Notification:
    message: str
    severity: Severity
    audience: Audience
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    read: bool = False


class NotificationSink(Protocol):
    def notify(self, message: str, severity: Severity, audience: Audience) -> None:
        ...


NativeNotifier = Callable[[str, str], None]
Listener = Callable[[Notification], None]


class NotificationCenter:
    """In-process sink keeping notifications per audience, newest first."""

    def __init__(self, limit: int = 100):
        self.limit = limit
        self._items: Dict[Audience, List[Notification]] = {a: [] for a in Audience}
        self._listeners: List[Listener] = []

    def notify(self, message: str, severity: Severity, audience: Audience) -> Notification:
        note = Notification(message=message, severity=Severity(severity), audience=Audience(audience))
        items = self._items[note.audience]
        items.insert(0, note)
        del items[self.limit:]
        for listener in list(self._listeners):
            try:
                listener(note)
            except Exception:
                logger.exception("Notification listener failed")
        return note

    def for_audience(self, audience: Audience) -> List[Notification]:
        return list(self._items[Audience(audience)])

    def unread_count(self, audience: Audience) -> int:
        return sum(1 for n in self._items[Audience(audience)] if not n.read)

    def mark_read(self, notification_id: str) -> bool:
        for items in self._items.values():
            for note in items:
                if note.id == notification_id:
                    note.read = True
                    return True
        return False

    def mark_all_read(self, audience: Audience) -> None:
        for note in self._items[Audience(audience)]:
            note.read = True

    def clear(self, audience: Optional[Audience] = None) -> None:
        targets = [Audience(audience)] if audience else list(Audience)
        for a in targets:
            self._items[a].clear()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
