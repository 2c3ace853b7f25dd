"""
Per-error-id throttle for operator notifications.

Allows at most ``limit`` notifications per error id within a fixed window
starting at the first notification. State is process-local and is lost on
restart, which only resets throttling.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional


logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass
class ThrottleEntry:
    """Notification count inside the current window for one error id."""

    count: int
    window_start: float


class NotificationThrottle:
    """
    Fixed-window notification gate keyed by error id.

    All access to the table goes through a single lock; expired entries are
    removed by ``sweep``, which ``run_sweeper`` calls on a fixed interval.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the throttle.

        Args:
            limit: Notifications admitted per error id per window
            window_seconds: Window length in seconds
            clock: Monotonic time source, injectable for tests
        """
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: Dict[str, ThrottleEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def admit(self, error_id: str) -> bool:
        """
        Decide whether a notification for ``error_id`` may be sent now.

        The first call opens a window with count 1. Calls inside the window
        increment the count and are admitted while it stays within the
        limit. The first call after the window has elapsed opens a new one.

        Args:
            error_id: Error id to check

        Returns:
            True if the notification should be sent
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(error_id)
            if entry is None or now - entry.window_start >= self.window_seconds:
                self._entries[error_id] = ThrottleEntry(count=1, window_start=now)
                return True

            entry.count += 1
            return entry.count <= self.limit

    def count(self, error_id: str) -> int:
        """Return the number of attempts seen in the current window."""
        with self._lock:
            entry = self._entries.get(error_id)
            return entry.count if entry else 0

    def sweep(self) -> int:
        """
        Remove entries whose window has elapsed.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [
                error_id for error_id, entry in self._entries.items()
                if now - entry.window_start >= self.window_seconds
            ]
            for error_id in expired:
                del self._entries[error_id]

        if expired:
            logger.debug(f"Swept {len(expired)} expired throttle entries")
        return len(expired)

    async def run_sweeper(
        self,
        interval_seconds: float,
        stop_event: Optional[asyncio.Event] = None
    ) -> None:
        """
        Sweep expired entries every ``interval_seconds`` until stopped.

        Args:
            interval_seconds: Delay between sweeps
            stop_event: Event that ends the loop when set
        """
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval_seconds)
            except asyncio.TimeoutError:
                self.sweep()
