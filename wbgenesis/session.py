"""A remote command session that gives back its connection slot when closed."""

from __future__ import annotations

import threading
from typing import Any


class Session:
    """Wraps an SSH channel together with the semaphore slot it occupies.

    Closing the session closes the channel and releases the slot exactly once.
    It can be used as a context manager.
    """

    def __init__(self, channel: Any, semaphore: threading.Semaphore):
        self.channel = channel
        self._semaphore = semaphore
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        """Whether the session has been closed."""
        return self._closed

    def close(self) -> None:
        """Release the semaphore slot and close the channel."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._semaphore.release()
        self.channel.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()