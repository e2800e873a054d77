from __future__ import annotations

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)


class SubscriptionRegistry:
    """Tracks which subscribers still want their callbacks delivered."""

    def __init__(self) -> None:
        self._subscribers: set[str] = set()
        self._lock = threading.Lock()

    def subscribe(self, subscriber_id: str) -> None:
        with self._lock:
            self._subscribers.add(subscriber_id)

    def unsubscribe(self, subscriber_id: str) -> None:
        with self._lock:
            self._subscribers.discard(subscriber_id)

    def is_subscribed(self, subscriber_id: str) -> bool:
        with self._lock:
            return subscriber_id in self._subscribers

    def should_deliver(self, subscriber_id: str | None) -> bool:
        return not subscriber_id or self.is_subscribed(subscriber_id)

    def gate(self, subscriber_id: str | None, deliver: Callable[[], None]) -> bool:
        """Invoke ``deliver`` unless ``subscriber_id`` names a departed subscriber.

        Returns whether the delivery happened.
        """
        if not self.should_deliver(subscriber_id):
            logger.debug("delivery suppressed subscriber_id=%s", subscriber_id)
            return False
        deliver()
        return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)
