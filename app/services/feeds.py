"""Push-based change feeds for catalog and order snapshots."""
import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[List[T]], None]


class ChangeFeed(Generic[T]):
    """In-process subscription point.

    Subscribers receive lists of immutable snapshots after each change. A
    failing subscriber is logged and skipped; it never affects the publisher
    or the other subscribers.
    """

    def __init__(self, name: str):
        self.name = name
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber and return a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, snapshots: List[T]) -> None:
        """Push snapshots to every subscriber."""
        if not snapshots:
            return
        for callback in list(self._subscribers):
            try:
                callback(snapshots)
            except Exception as e:
                logger.error(
                    f"[FEED {self.name}] Subscriber {callback!r} failed: {type(e).__name__}: {e}",
                    exc_info=True,
                )

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
