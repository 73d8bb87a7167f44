import logging
import time
from collections import deque
from threading import Lock
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 3600
DEFAULT_THRESHOLDS = {
    "PROVIDER_TIMEOUT": 5,
    "PROVIDER_ERROR": 5,
    "GENERATION_PLACEHOLDER": 3,
    "PERSISTENCE_FAILURE": 1,
}


def _bucket_key(action: str, subject: str) -> str:
    return f"{action}:{subject}" if subject else action


class GenerationAlertTracker:
    """Counts failure events per (action, subject) in a sliding window.

    Logs an ``ALERT`` line at the threshold and every multiple of it. This is
    observation only; nothing reads it back to change provider selection.
    """

    def __init__(self, window_seconds: int, thresholds: dict[str, int]) -> None:
        self._window_seconds = window_seconds
        self._thresholds = thresholds
        self._events: dict[str, deque[float]] = {}
        self._lock = Lock()

    def _live(self, key: str, now: float) -> deque[float]:
        """Return the event deque for *key* with stale timestamps dropped (called under lock)."""
        events = self._events.setdefault(key, deque())
        horizon = now - self._window_seconds
        while events and events[0] <= horizon:
            events.popleft()
        return events

    def record(self, action: str, subject: str = "", metadata: Optional[dict] = None) -> bool:
        """Count one event; returns True when this event raised an alert."""
        threshold = self._thresholds.get(action)
        if threshold is None:
            return False
        now = time.monotonic()
        with self._lock:
            events = self._live(_bucket_key(action, subject), now)
            events.append(now)
            count = len(events)

        if count % threshold:
            return False
        logger.warning(
            "ALERT generation_event=%s subject=%s count=%s window_seconds=%s metadata=%s",
            action,
            subject or "-",
            count,
            self._window_seconds,
            metadata or {},
        )
        return True

    def count(self, action: str, subject: str = "") -> int:
        key = _bucket_key(action, subject)
        with self._lock:
            if key not in self._events:
                return 0
            events = self._live(key, time.monotonic())
            if not events:
                del self._events[key]
            return len(events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()


alert_tracker = GenerationAlertTracker(DEFAULT_WINDOW_SECONDS, DEFAULT_THRESHOLDS)
