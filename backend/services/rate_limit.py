"""
Fixed-window request limiter, kept in memory per (client, endpoint).
"""
import threading
import time
from typing import Dict, Optional, Tuple

DEFAULT_MESSAGE = "Too many requests, please try again later."

class RateLimiter:
    def __init__(self, max_requests: int, window_seconds: float = 60.0, max_entries: int = 10000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self._windows: Dict[Tuple[str, str], Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def hit(self, client: str, endpoint: str, now: Optional[float] = None) -> bool:
        """Count one request. Returns False when the caller is over the limit."""
        now = time.monotonic() if now is None else now
        key = (client, endpoint)
        with self._lock:
            if key not in self._windows and len(self._windows) >= self.max_entries:
                self._purge_expired(now)
            count, reset_at = self._windows.get(key, (0, 0.0))
            if reset_at <= now:
                self._windows[key] = (1, now + self.window_seconds)
                return True
            if count < self.max_requests:
                self._windows[key] = (count + 1, reset_at)
                return True
            return False

    def _purge_expired(self, now: float) -> None:
        # Caller holds the lock
        expired = [key for key, (_, reset_at) in self._windows.items() if reset_at <= now]
        for key in expired:
            del self._windows[key]

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
