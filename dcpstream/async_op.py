"""Waiting on a callback-driven operation with a deadline."""

from __future__ import annotations

import threading
import time
from typing import Protocol

__all__ = ["AsyncOp", "PendingOp"]


class PendingOp(Protocol):
    """An in-flight operation that can be cancelled."""

    def cancel(self) -> None: ...


class AsyncOp:
    """Bridges a completion callback to a blocking wait with an optional timeout.

    The callback calls :meth:`resolve`; the caller blocks in :meth:`wait`.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._deadline = None if timeout is None else time.monotonic() + timeout
        self._done = threading.Event()

    def resolve(self) -> None:
        """Mark the operation as completed."""
        self._done.set()

    def wait(self, op: PendingOp | None) -> None:
        """Block until resolved; on timeout cancel ``op`` and raise ``TimeoutError``.

        ``TimeoutError`` is also raised when resolution arrives after the deadline.
        """
        if self._deadline is None:
            self._done.wait()
            return

        remaining = self._deadline - time.monotonic()
        resolved = self._done.wait(max(remaining, 0.0))
        if not resolved:
            if op is not None:
                op.cancel()
            raise TimeoutError("operation deadline exceeded")
        if time.monotonic() >= self._deadline:
            raise TimeoutError("operation deadline exceeded")