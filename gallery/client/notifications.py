from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional
import logging
import secrets
import time

log = logging.getLogger(__name__)

DEFAULT_DURATION = 5.0


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"
    WARNING = "warning"


@dataclass
class Notification:
    id: str
    level: NotificationLevel
    title: str
    description: Optional[str] = None
    duration: Optional[float] = DEFAULT_DURATION
    created_at: float = field(default_factory=time.monotonic)

    def expired(self, now: Optional[float] = None) -> bool:
        if self.duration is None:
            return False
        return (now if now is not None else time.monotonic()) - self.created_at >= self.duration


class Notifier:
    """Queue of transient, dismissable notifications.

    One instance is created per client session and handed to the queue and
    the orchestrator; it starts empty and `clear` empties it again.
    """

    def __init__(self):
        self._items: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]):
        self._listeners.append(listener)

    def notify(self, level: NotificationLevel, title: str, description: Optional[str] = None,
               duration: Optional[float] = DEFAULT_DURATION) -> str:
        item = Notification(id=secrets.token_hex(5), level=NotificationLevel(level), title=title,
                            description=description, duration=duration)
        self._prune(item.created_at)
        self._items.append(item)
        log.log(logging.WARNING if item.level is NotificationLevel.ERROR else logging.INFO,
                "[%s] %s", item.level.value, title)
        for listener in self._listeners:
            listener(item)
        return item.id

    def success(self, title: str, description: Optional[str] = None) -> str:
        return self.notify(NotificationLevel.SUCCESS, title, description)

    def error(self, title: str, description: Optional[str] = None) -> str:
        return self.notify(NotificationLevel.ERROR, title, description)

    def warning(self, title: str, description: Optional[str] = None) -> str:
        return self.notify(NotificationLevel.WARNING, title, description)

    def info(self, title: str, description: Optional[str] = None) -> str:
        return self.notify(NotificationLevel.INFO, title, description)

    def dismiss(self, notification_id: str):
        self._items = [n for n in self._items if n.id != notification_id]

    def active(self) -> List[Notification]:
        """Notifications not yet expired; expired ones are dropped."""
        self._prune(time.monotonic())
        return list(self._items)

    def _prune(self, now: float):
        self._items = [n for n in self._items if not n.expired(now)]

    def history(self, level: Optional[NotificationLevel] = None) -> List[Notification]:
        return [n for n in self._items if level is None or n.level is level]

    def clear(self):
        self._items.clear()
