"""In-memory rate limiter for practice endpoint throttling."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque


class InMemoryRateLimiter:
    """Sliding-window limiter per key (user + route).

    State lives in process memory, so limits apply per worker.
    """

    def __init__(self):
        self._hits = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, max_requests: int, window_seconds: int) -> tuple[bool, int]:
        """Record a hit for `key` if allowed.

        Returns `(allowed, retry_after_seconds)`; `retry_after` is 0 when
        the request is allowed.
        """
        if max_requests <= 0:
            return True, 0
        now = time.monotonic()
        with self._lock:
            q = self._hits[key]
            cutoff = now - window_seconds
            while q and q[0] < cutoff:
                q.popleft()
            if len(q) >= max_requests:
                return False, max(1, int(window_seconds - (now - q[0])))
            q.append(now)
        return True, 0

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
