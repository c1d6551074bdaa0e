import threading
from dataclasses import dataclass
from typing import Callable, List, Literal

from loguru import logger

Variant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notification:
    title: str
    description: str = ""
    variant: Variant = "default"
    persistent: bool = False  # stays until dismissed (permission banners)


Listener = Callable[[Notification], None]


class Subscription:
    def __init__(self, center: "NotificationCenter", listener: Listener):
        self._center = center
        self.listener = listener
        self.active = True

    def close(self) -> None:
        if self.active:
            self._center._remove(self)
            self.active = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class NotificationCenter:
    """Publish/subscribe registry for user-facing notifications.

    Screens subscribe when they mount and close the subscription when they
    unmount; a listener only hears what is published in between.
    """

    def __init__(self):
        self._subs: List[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Subscription:
        sub = Subscription(self, listener)
        with self._lock:
            self._subs.append(sub)
        return sub

    def _remove(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subs:
                self._subs.remove(sub)

    @property
    def listener_count(self) -> int:
        return len(self._subs)

    def publish(self, notification: Notification) -> None:
        with self._lock:
            subs = list(self._subs)
        for sub in subs:
            try:
                sub.listener(notification)
            except Exception:
                logger.exception("Notification listener failed")

    def success(self, title: str, description: str = "") -> None:
        self.publish(Notification(title, description))

    def error(self, title: str, description: str = "", persistent: bool = False) -> None:
        self.publish(Notification(title, description, "destructive", persistent))
