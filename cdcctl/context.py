"""Cancellable, deadline-bearing call context.

Every store operation receives a ``CallContext``. The context is checked
before each store call; a cancelled or expired context aborts the operation
before it reaches the store.
"""
from __future__ import annotations

import threading
import time
from typing import Optional

from .core.errors import DeadlineExceeded, OperationCancelled


class CallContext:
    def __init__(self, timeout: Optional[float] = None, *, _deadline: Optional[float] = None,
                 _parent: Optional["CallContext"] = None) -> None:
        if _deadline is None and timeout is not None:
            _deadline = time.monotonic() + max(0.0, float(timeout))
        self._deadline = _deadline
        self._parent = _parent
        self._cancelled = threading.Event()

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def cancel(self) -> None:
        self._cancelled.set()

    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def child(self, timeout: Optional[float] = None) -> "CallContext":
        """Derive a context that is cancelled with this one and never outlives it."""
        deadline = self._deadline
        if timeout is not None:
            own = time.monotonic() + max(0.0, float(timeout))
            deadline = own if deadline is None else min(deadline, own)
        return CallContext(_deadline=deadline, _parent=self)

    def check(self, operation: str) -> None:
        if self.cancelled():
            raise OperationCancelled(f"{operation} cancelled", {"operation": operation})
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise DeadlineExceeded(f"{operation} deadline exceeded", {"operation": operation})


def background() -> CallContext:
    """An unbounded context that is never cancelled unless asked to."""
    return CallContext()
