"""
NotificationService: in-process outbox for player-facing notifications.

The engine only records what happened (match found, phase advanced, rank up).
The presentation layer drains the outbox, or registers a listener, and
renders messages itself.
"""

import logging
import threading
from typing import Any, Callable

from domain.models.notification import Notification

logger = logging.getLogger("ranked_engine.services.notifications")

NotificationListener = Callable[[Notification], None]


class NotificationService:
    """Collects notifications until drained and fans them out to listeners."""

    def __init__(self):
        self._outbox: list[Notification] = []
        self._listeners: list[NotificationListener] = []
        self._lock = threading.Lock()

    def add_listener(self, listener: NotificationListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: NotificationListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def notify(self, recipient_id: int, kind: str, **payload: Any) -> Notification:
        """
        Queue a notification for one player.

        Args:
            recipient_id: Player to notify
            kind: One of the kinds in domain.models.notification
            **payload: Kind-specific fields (match_id, phase, rep_change, ...)

        Returns:
            The recorded notification
        """
        notification = Notification(recipient_id=recipient_id, kind=kind, payload=dict(payload))
        with self._lock:
            self._outbox.append(notification)
            listeners = list(self._listeners)

        logger.debug(f"Notify {recipient_id}: {kind} {payload}")
        for listener in listeners:
            try:
                listener(notification)
            except Exception:
                # A broken renderer must not undo an engine state change
                logger.exception(f"Notification listener failed for {kind} -> {recipient_id}")
        return notification

    def notify_many(self, recipient_ids: list[int], kind: str, **payload: Any) -> list[Notification]:
        return [self.notify(recipient_id, kind, **payload) for recipient_id in recipient_ids]

    def drain(self) -> list[Notification]:
        """Return and clear every pending notification, oldest first."""
        with self._lock:
            drained, self._outbox = self._outbox, []
        return drained

    def peek(self, recipient_id: int | None = None, kind: str | None = None) -> list[Notification]:
        """Pending notifications, optionally filtered, without removing them."""
        with self._lock:
            pending = list(self._outbox)
        return [
            n
            for n in pending
            if (recipient_id is None or n.recipient_id == recipient_id) and (kind is None or n.kind == kind)
        ]

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._outbox)
