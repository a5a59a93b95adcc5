"""Cooperative cancellation and deadlines for a resolution run."""

from __future__ import annotations

import time
from typing import Optional

from .errors import Cancelled, DeadlineExceeded


class _CancelState:
    def __init__(self) -> None:
        self.reason: Optional[str] = None


class Context:
    """Cancellation token threaded through every resolution call.

    A child created by ``with_timeout`` shares its parent's cancellation
    and carries the earlier of the two deadlines.

    Args:
        deadline: Absolute ``time.monotonic()`` deadline, if any.
    """

    def __init__(self, deadline: Optional[float] = None, _state: Optional[_CancelState] = None):
        self.deadline = deadline
        self._state = _state or _CancelState()

    def cancel(self, reason: str = "context cancelled") -> None:
        if self._state.reason is None:
            self._state.reason = reason

    @property
    def cancelled(self) -> bool:
        return self._state.reason is not None

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, ``None`` without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def with_timeout(self, seconds: Optional[float]) -> "Context":
        if seconds is None:
            return Context(self.deadline, self._state)
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return Context(deadline, self._state)

    def err(self) -> Optional[Cancelled]:
        if self._state.reason is not None:
            return Cancelled(self._state.reason)
        if self.expired:
            return DeadlineExceeded("context deadline exceeded")
        return None

    def check(self) -> None:
        """Raise the context's error if it is cancelled or past its deadline."""
        err = self.err()
        if err is not None:
            raise err


def background() -> Context:
    return Context()
