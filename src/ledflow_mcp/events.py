"""Publish/subscribe channels owned by coordinators.

Each coordinator owns the channels for the state it writes; presentation
surfaces subscribe to receive snapshots and never mutate them.
"""

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    """Synchronous fan-out of published values to registered callbacks."""

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def _unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, value: T) -> None:
        # A failing subscriber must not break the publisher or its siblings
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.warning("[Events] Subscriber on %s failed: %s", self.name, e)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
