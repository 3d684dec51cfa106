"""Cooperative cancellation for long-running migration passes."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, List, Optional

from token_encryptor.core.errors import MigrationCancelledError

LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """Carry an operator cancel request and an optional deadline.

    The token is passed into every repository and gateway call, which check it
    before doing work. Callbacks registered with :meth:`on_cancel` run once
    when :meth:`cancel` is first called, so a blocked driver call can be
    interrupted (for example ``sqlite3.Connection.interrupt``). An expired
    deadline is noticed the next time the token is polled and cancels it
    the same way.
    """

    def __init__(
        self,
        *,
        deadline_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._clock = clock
        self._deadline = clock() + deadline_seconds if deadline_seconds else None
        self._callbacks: List[Callable[[], None]] = []
        self._reason = "cancelled"

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and self._clock() >= self._deadline:
            self.cancel("deadline exceeded")
            return True
        return False

    @property
    def reason(self) -> str:
        return self._reason

    def on_cancel(self, callback: Callable[[], None]) -> None:
        self._callbacks.append(callback)

    def cancel(self, reason: str = "cancelled by operator") -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
        LOGGER.warning("Migration cancellation requested: %s", reason)
        for callback in callbacks:
            callback()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise MigrationCancelledError(f"Migration aborted: {self._reason}.")


def raise_if_cancelled(token: Optional[CancellationToken]) -> None:
    """Check an optional token; ``None`` means the caller cannot cancel."""
    if token is not None:
        token.raise_if_cancelled()


__all__ = ["CancellationToken", "raise_if_cancelled"]
