from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger("ubs-flow")


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to one collection"""

    collection: str
    action: str
    ids: tuple[str, ...] = field(default_factory=tuple)


Subscriber = Callable[[ChangeEvent], None]


class ChangeBus:
    """In-process pub/sub channel for store changes

    Delivery is at-least-once per subscriber, with no ordering guarantee
    between subscribers. Receivers are expected to re-read the collection
    in full rather than apply the event as a diff.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a receiver

        Args:
            callback: called with every published event

        Returns:
            Function that removes the registration
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber

        A failing subscriber is logged and does not block the others.
        """
        with self._lock:
            receivers = list(self._subscribers)
        for callback in receivers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "change subscriber failed",
                    extra={"event": "notify_failed", "stage": event.collection},
                )
