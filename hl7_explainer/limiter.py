"""In-memory rate limiter for the HL7 explainer gateway.

Tracks per-source request counts using a fixed window. A source that reaches
the limit is rejected until its window elapses; nothing carries over between
windows. Stale windows are purged lazily so the map only holds sources seen
within roughly the last window.
"""

import math
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class RateLimitStatus:
    """Window state reported back to the caller as rate-limit headers."""

    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        """Standard ``RateLimit-*`` response headers."""
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(max(0, math.ceil(self.reset_after))),
        }


class RateLimitExceeded(Exception):
    """Raised when a source exceeds its request window."""

    def __init__(self, source_key: str, detail: str, status: RateLimitStatus) -> None:
        self.source_key = source_key
        self.detail = detail
        self.status = status
        super().__init__(detail)

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil(self.status.reset_after))

    def headers(self) -> Dict[str, str]:
        headers = self.status.headers()
        headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class _SourceWindow:
    """Fixed-window counter for a single source key."""

    window_start: float = 0.0
    count: int = 0


@dataclass
class RateLimiter:
    """Per-source in-memory rate limiter.

    All bucket access happens under one lock, so concurrent checks for the
    same source never admit more than ``max_requests`` per window.
    """

    window_ms: int = 60000
    max_requests: int = 10
    clock: Callable[[], float] = time.monotonic
    _windows: Dict[str, _SourceWindow] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _last_purge: Optional[float] = None

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000.0

    def check(self, source_key: str) -> RateLimitStatus:
        """Count one request for source_key against its current window.

        Args:
            source_key: The caller's identifier (normally its IP address).

        Returns:
            The window status after counting this request.

        Raises:
            RateLimitExceeded: If the source already used up its window.
        """
        with self._lock:
            now = self.clock()
            self._maybe_purge(now)
            window = self._get_or_reset_window(source_key, now)
            reset_after = window.window_start + self.window_seconds - now

            if window.count >= self.max_requests:
                status = RateLimitStatus(self.max_requests, 0, reset_after)
                raise RateLimitExceeded(
                    source_key,
                    "Request rate exceeded for {} ({} req per {} ms).".format(
                        source_key, self.max_requests, self.window_ms
                    ),
                    status,
                )

            window.count += 1
            return RateLimitStatus(
                self.max_requests, self.max_requests - window.count, reset_after
            )

    def purge_expired(self) -> int:
        """Drop every window that has fully elapsed. Returns the number removed."""
        with self._lock:
            return self._purge(self.clock())

    @property
    def tracked_sources(self) -> int:
        with self._lock:
            return len(self._windows)

    def _maybe_purge(self, now: float) -> None:
        if self._last_purge is None:
            self._last_purge = now
        elif now - self._last_purge >= self.window_seconds:
            self._purge(now)

    def _purge(self, now: float) -> int:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.window_start >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        self._last_purge = now
        return len(expired)

    def _get_or_reset_window(self, source_key: str, now: float) -> _SourceWindow:
        """Retrieve the window for source_key, resetting it if it expired."""
        window = self._windows.get(source_key)

        if window is None or (now - window.window_start) >= self.window_seconds:
            window = _SourceWindow(window_start=now)
            self._windows[source_key] = window

        return window


def source_key_for(
    forwarded_for: Optional[str],
    peer_host: Optional[str],
    trust_forwarded_for: bool = True,
) -> str:
    """Derive the rate-limit key for a request.

    Uses the first address of an ``X-Forwarded-For`` chain when present and
    trusted, otherwise the direct peer. Trusting the header is only safe
    behind a reverse proxy that overwrites it.
    """
    if trust_forwarded_for and forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer_host or "unknown"
