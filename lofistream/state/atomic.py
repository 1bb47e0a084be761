"""
Small atomic cells shared between the control loop and its observers.

Reads are plain attribute loads of an immutable value, so readers never
wait. Every writer (store, swap, compare-and-swap, increment) takes a private
lock that is only ever held for the duration of the update itself, never
across I/O or a blocking wait.
"""

import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class AtomicCell(Generic[T]):
    """Atomically replaceable reference."""

    def __init__(self, value: Optional[T] = None):
        self._value = value
        self._lock = threading.Lock()

    def load(self) -> Optional[T]:
        return self._value

    def store(self, value: Optional[T]) -> None:
        with self._lock:
            self._value = value

    def swap(self, value: Optional[T]) -> Optional[T]:
        """Replace the value and return the previous one."""
        with self._lock:
            previous = self._value
            self._value = value
            return previous

    def compare_and_swap(self, expected: Optional[T], value: Optional[T]) -> bool:
        """
        Replace the value only if it is still `expected` (identity comparison).

        Returns:
            True if the swap happened
        """
        with self._lock:
            if self._value is not expected:
                return False
            self._value = value
            return True


class AtomicFlag:
    """Boolean flag with swap semantics."""

    def __init__(self, value: bool = False):
        self._value = bool(value)
        self._lock = threading.Lock()

    def load(self) -> bool:
        return self._value

    def store(self, value: bool) -> None:
        with self._lock:
            self._value = bool(value)

    def swap(self, value: bool) -> bool:
        with self._lock:
            previous = self._value
            self._value = bool(value)
            return previous


class AtomicCounter:
    """Monotonic integer counter."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def load(self) -> int:
        return self._value

    def increment(self) -> int:
        """Increment and return the new value."""
        with self._lock:
            self._value += 1
            return self._value
