import secrets
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, List, Optional, Tuple

from clinica.core.logger import logger

KINDS = ("success", "error", "info", "warning")
MAX_NOTIFICATIONS = 50


@dataclass(frozen=True)
class Notification:
    id: str
    message: str
    kind: str = "info"
    owner: Optional[str] = None


Listener = Callable[[List[Notification]], None]


class NotificationCenter:
    """
    Publish/subscribe hub for user-facing notices.

    One instance is created when the application starts and lives on
    ``app.state.notifications``. Notices are kept per owner (the signed-in
    user; ``None`` for process-wide notices), each feed holding at most
    ``max_items`` entries with the oldest evicted first. Subscribers only
    hear about the feed they subscribed to.
    """

    def __init__(self, max_items: int = MAX_NOTIFICATIONS):
        self.max_items = max_items
        self._listeners: List[Tuple[Listener, Optional[str]]] = []
        self._feeds: Dict[Optional[str], Deque[Notification]] = {}

    def subscribe(self, listener: Listener, owner: Optional[str] = None) -> Callable[[], None]:
        entry = (listener, owner)
        self._listeners.append(entry)
        listener(self.snapshot(owner))

        def unsubscribe():
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def snapshot(self, owner: Optional[str] = None) -> List[Notification]:
        return list(self._feeds.get(owner, ()))

    def publish(self, message: str, kind: str = "info", owner: Optional[str] = None) -> str:
        if kind not in KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        notification = Notification(id=secrets.token_hex(4), message=message, kind=kind, owner=owner)
        feed = self._feeds.setdefault(owner, deque(maxlen=self.max_items))
        feed.append(notification)
        self._notify(owner)
        return notification.id

    def dismiss(self, notification_id: str, owner: Optional[str] = None) -> bool:
        feed = self._feeds.get(owner, deque())
        match = next((n for n in feed if n.id == notification_id), None)
        if match is None:
            return False
        feed.remove(match)
        self._notify(owner)
        return True

    def clear(self, owner: Optional[str] = None):
        self._feeds.pop(owner, None)
        self._notify(owner)

    def reset(self):
        self._feeds.clear()
        self._listeners.clear()

    def success(self, message: str, owner: Optional[str] = None) -> str:
        return self.publish(message, "success", owner)

    def error(self, message: str, owner: Optional[str] = None) -> str:
        return self.publish(message, "error", owner)

    def info(self, message: str, owner: Optional[str] = None) -> str:
        return self.publish(message, "info", owner)

    def warning(self, message: str, owner: Optional[str] = None) -> str:
        return self.publish(message, "warning", owner)

    def for_owner(self, owner: Optional[str]) -> "NotificationFeed":
        return NotificationFeed(self, owner)

    def _notify(self, owner: Optional[str]):
        current = self.snapshot(owner)
        for listener, listens_to in list(self._listeners):
            if listens_to != owner:
                continue
            try:
                listener(current)
            except Exception:
                logger.exception("Notification listener failed")


class NotificationFeed:
    """One owner's view of a NotificationCenter."""

    def __init__(self, center: NotificationCenter, owner: Optional[str]):
        self.center = center
        self.owner = owner

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.center.subscribe(listener, self.owner)

    def snapshot(self) -> List[Notification]:
        return self.center.snapshot(self.owner)

    def publish(self, message: str, kind: str = "info") -> str:
        return self.center.publish(message, kind, self.owner)

    def dismiss(self, notification_id: str) -> bool:
        return self.center.dismiss(notification_id, self.owner)

    def clear(self):
        self.center.clear(self.owner)

    def success(self, message: str) -> str:
        return self.publish(message, "success")

    def error(self, message: str) -> str:
        return self.publish(message, "error")

    def info(self, message: str) -> str:
        return self.publish(message, "info")

    def warning(self, message: str) -> str:
        return self.publish(message, "warning")
