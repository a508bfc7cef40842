"""
Fixed-window login rate limiter, keyed by client IP.

One instance is created per app in create_app() and kept in
app.extensions["rate_limiter"]. State lives in memory and is lost on restart.
"""
from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0


class LoginRateLimiter:
    def __init__(
        self,
        window_seconds: float = 900,
        max_attempts: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        # Flask serves requests on several threads; every access goes through this lock
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def check(self, ip: str) -> RateLimitDecision:
        """Count one attempt for ip and decide whether it may proceed."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(ip)
            if entry is None or entry.reset_at <= now:
                self._entries[ip] = RateLimitEntry(count=1, reset_at=now + self.window_seconds)
                return RateLimitDecision(allowed=True)
            if entry.count >= self.max_attempts:
                retry_after = max(1, math.ceil(entry.reset_at - now))
                logger.warning("login rate limit hit for %s, retry in %ss", ip, retry_after)
                return RateLimitDecision(allowed=False, retry_after=retry_after)
            entry.count += 1
            return RateLimitDecision(allowed=True)

    def reset(self, ip: str) -> None:
        """Forget ip; called after a successful login."""
        with self._lock:
            self._entries.pop(ip, None)

    def remaining(self, ip: str) -> int:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(ip)
            if entry is None or entry.reset_at <= now:
                return self.max_attempts
            return max(0, self.max_attempts - entry.count)

    def sweep(self) -> int:
        """Drop entries whose window has passed. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [ip for ip, entry in self._entries.items() if entry.reset_at <= now]
            for ip in expired:
                del self._entries[ip]
        if expired:
            logger.debug("rate limiter swept %d expired entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def start_sweeper(self, interval: float = 300) -> None:
        """Run sweep() every `interval` seconds on a daemon thread."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()

        def _run():
            while not self._stop.wait(interval):
                self.sweep()

        self._sweeper = threading.Thread(target=_run, name="login-rate-limit-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1)
            self._sweeper = None
