"""Fire-and-forget user notification sinks."""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, message: str) -> None:
        """Deliver one user-visible message; must not raise or block."""


class LogNotifier:
    """Writes notifications to the log; used when no UI is attached."""

    def notify(self, message: str) -> None:
        logger.warning("Notification: %s", message)


class QueueNotifier:
    """Buffers notifications until the UI thread drains them.

    The polling loop and the Streamlit script run on different threads, so
    the buffer is guarded by a lock and capped at ``maxlen`` messages.
    """

    def __init__(self, maxlen: int = 50) -> None:
        self._messages: deque[str] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def notify(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    def drain(self) -> list[str]:
        with self._lock:
            messages = list(self._messages)
            self._messages.clear()
        return messages
