"""Per-client request limiter for the token endpoints (fixed window, in memory)."""
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from trackguess.config import TOKEN_RATE_LIMIT, TOKEN_RATE_WINDOW_SEC

CLEANUP_INTERVAL_SEC = 120.0


@dataclass
class _Bucket:
    count: int
    expires_at: float


class RateLimiter:
    def __init__(
        self,
        limit: int = TOKEN_RATE_LIMIT,
        window_sec: float = TOKEN_RATE_WINDOW_SEC,
        cleanup_interval_sec: float = CLEANUP_INTERVAL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_sec = window_sec
        self._cleanup_interval_sec = cleanup_interval_sec
        self._clock = clock
        self._buckets: Dict[str, _Bucket] = {}
        self._last_cleanup = clock()
        self._lock = threading.Lock()

    def allow(self, identifier: str) -> bool:
        """Count one request for identifier; False once the window's limit is used up."""
        with self._lock:
            now = self._clock()
            self._cleanup(now)
            bucket = self._buckets.get(identifier)
            if bucket is None or bucket.expires_at <= now:
                self._buckets[identifier] = _Bucket(count=1, expires_at=now + self.window_sec)
                return True
            if bucket.count + 1 > self.limit:
                return False
            bucket.count += 1
            return True

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self._cleanup_interval_sec:
            return
        for key in [k for k, b in self._buckets.items() if b.expires_at <= now]:
            del self._buckets[key]
        self._last_cleanup = now


def client_identifier(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
    """First x-forwarded-for hop, else x-real-ip, else the socket peer."""
    forwarded_for = headers.get("x-forwarded-for") or ""
    first = forwarded_for.split(",")[0].strip()
    return first or headers.get("x-real-ip") or fallback or "unknown"
