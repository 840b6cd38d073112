"""Fixed-window rate limiter for the chat relay.

Default budgets (see ``Settings``):

- general traffic: 100 requests / 15 min
- session init: 5 requests / min
- message send: 10 requests / min

Windows are fixed, not sliding: a burst straddling a window boundary can
admit up to twice the nominal rate over a short interval.  That is the
price of O(1) bookkeeping per key.

Uses ``time.monotonic()`` for timestamps -- immune to wall-clock adjustments.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from chatrelay.relay.redaction import redact_address


@dataclass
class RateWindow:
    """Request count for one key within its current window."""

    count: int
    window_started_at: float


@dataclass
class FixedWindowCounter:
    """In-memory fixed-window counter for rate limiting."""

    limit: int
    window_seconds: float
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _windows: dict[str, RateWindow] = field(default_factory=dict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def check(self, key: str) -> bool:
        """Return True if *key* is under the rate limit, else False.

        A window older than ``window_seconds`` restarts at ``count=1``.
        Denied requests are not counted.
        """
        now = self.clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.window_started_at >= self.window_seconds:
                self._windows[key] = RateWindow(count=1, window_started_at=now)
                return True
            if window.count >= self.limit:
                return False
            window.count += 1
            return True

    def remaining(self, key: str) -> int:
        """Return the number of requests remaining for *key* in its window."""
        now = self.clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.window_started_at >= self.window_seconds:
                return self.limit
            return max(0, self.limit - window.count)

    def cleanup(self) -> int:
        """Remove keys whose window has expired.  Returns the number removed."""
        now = self.clock()
        with self._lock:
            expired = [
                key
                for key, window in self._windows.items()
                if now - window.window_started_at >= self.window_seconds
            ]
            for key in expired:
                del self._windows[key]
        return len(expired)

    def __len__(self) -> int:
        """Return the number of tracked keys (for monitoring)."""
        return len(self._windows)


def rate_limit_key(user_id: str | None, origin: str, salt: str) -> str:
    """Resolve the bucket key for a request.

    An explicit, non-empty *user_id* wins; otherwise the redacted *origin*.
    The two namespaces are prefixed so a user id can never collide with a
    digest.
    """
    if user_id is not None:
        user_id = str(user_id).strip()
        if user_id:
            return f"user:{user_id}"
    return f"addr:{redact_address(origin, salt)}"
