"""Cursor-based log of order changes for live order lists."""
from collections import deque
from typing import Deque, List, Tuple

from pydantic import BaseModel

from app.services.ordering.models import Order

DEFAULT_CAPACITY = 500


class OrderChanges(BaseModel):
    """Orders changed after a cursor, and the cursor to poll from next."""

    cursor: int
    orders: List[Order] = []


class OrderChangeLog:
    """Order feed subscriber keeping the most recent order snapshots.

    Each published snapshot gets the next sequence number. Clients poll with
    the last cursor they saw; entries older than the capacity are dropped, so
    a client that falls far behind reloads the full list instead.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        self._entries: Deque[Tuple[int, Order]] = deque(maxlen=capacity)
        self._sequence = 0

    @property
    def cursor(self) -> int:
        return self._sequence

    def record(self, orders: List[Order]) -> None:
        for order in orders:
            self._sequence += 1
            self._entries.append((self._sequence, order))

    def since(self, cursor: int) -> OrderChanges:
        """Latest snapshot of every order changed after ``cursor``, oldest change first."""
        latest = {}
        for sequence, order in self._entries:
            if sequence > cursor:
                latest.pop(order.id, None)
                latest[order.id] = order
        return OrderChanges(cursor=self._sequence, orders=list(latest.values()))

    def clear(self) -> None:
        self._entries.clear()
        self._sequence = 0
