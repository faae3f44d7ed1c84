"""
Core Module - Cancellation Signal.

============================================================
RESPONSIBILITY
============================================================
A single cancellation/deadline signal attached to one
aggregation request and handed to every per-source fetch.

- Explicit cancel() from the caller
- Optional deadline (seconds from creation)
- Awaitable, so a fetch can be raced against it
- Observing it never raises by itself; raise_if_cancelled()
  is the opt-in check

============================================================
"""

import asyncio
import time
from typing import Optional


class OperationCancelledError(Exception):
    """Raised by raise_if_cancelled() once the token is cancelled."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline."""

    DEADLINE_REASON = "Deadline exceeded"

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._event = asyncio.Event()
        self._reason: Optional[str] = None
        self._deadline: Optional[float] = (
            time.monotonic() + timeout_seconds if timeout_seconds is not None else None
        )

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._trip(self.DEADLINE_REASON)
            return True
        return False

    @property
    def reason(self) -> Optional[str]:
        if self.is_cancelled:
            return self._reason
        return None

    def cancel(self, reason: str = "Operation cancelled") -> None:
        """Cancel the token. Later calls keep the first reason."""
        self._trip(reason)

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def raise_if_cancelled(self) -> None:
        if self.is_cancelled:
            raise OperationCancelledError(self._reason or "Operation cancelled")

    async def wait(self) -> None:
        """Block until the token is cancelled or its deadline passes."""
        if self.is_cancelled:
            return

        remaining = self.remaining()
        if remaining is None:
            await self._event.wait()
            return

        try:
            await asyncio.wait_for(self._event.wait(), timeout=remaining)
        except asyncio.TimeoutError:
            self._trip(self.DEADLINE_REASON)

    def _trip(self, reason: str) -> None:
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    def __repr__(self) -> str:
        return f"<CancellationToken(cancelled={self.is_cancelled}, reason={self._reason!r})>"
