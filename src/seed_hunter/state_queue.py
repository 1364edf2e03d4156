import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SingleSlotQueue(Generic[T]):
    """Thread-safe, size=1, latest-wins queue. The consumer only ever sees the newest item."""

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._value: Optional[T] = None
        self._has_value = False
        self._closed = False

    def publish(self, item: T) -> None:
        """Replace whatever is waiting with `item`. Ignored once closed."""
        with self._condition:
            if self._closed:
                return
            self._value = item
            self._has_value = True
            self._condition.notify()

    def close(self) -> None:
        """Close the queue. A pending item can still be read."""
        with self._condition:
            self._closed = True
            self._condition.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Block until an item is available or the queue is closed. Returns None on close."""
        with self._condition:
            ok = self._condition.wait_for(lambda: self._has_value or self._closed, timeout)
            if not ok:
                raise TimeoutError("queue get() timed out")
            if not self._has_value:
                return None
            item = self._value
            self._value = None
            self._has_value = False
            return item
