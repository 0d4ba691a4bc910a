"""Process-wide usage ledger.

Holds the request, failure and token counters plus per-country request
counts. State lives in memory only and resets when the process restarts.

``total_requests`` counts admitted requests and is incremented before the
LLM call; ``failures`` counts downstream failures after it. The two are
independent counters, not a success/failure split of the same population.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict


class DailyLimitReached(Exception):
    """Raised when the global request ceiling has been reached."""

    def __init__(self, daily_limit: int) -> None:
        self.daily_limit = daily_limit
        super().__init__(
            "Daily request limit of {} reached.".format(daily_limit)
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy of the ledger, taken under its lock."""

    total_requests: int
    failures: int
    total_tokens: int
    country_counts: Dict[str, int]


@dataclass
class QuotaLedger:
    """Lock-guarded usage counters.

    Every read-modify-write takes the lock, and the lock is never held
    across an await, so the LLM call is never bracketed by it.
    """

    total_requests: int = 0
    failures: int = 0
    total_tokens: int = 0
    country_counts: Dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def is_exhausted(self, daily_limit: int) -> bool:
        with self._lock:
            return self.total_requests >= daily_limit

    def admit(self, daily_limit: int) -> int:
        """Count one admitted request against the ceiling.

        The check and the increment are a single atomic step, so concurrent
        callers can never push ``total_requests`` past ``daily_limit``.

        Returns:
            The new total request count.

        Raises:
            DailyLimitReached: If the ceiling was already reached.
        """
        with self._lock:
            if self.total_requests >= daily_limit:
                raise DailyLimitReached(daily_limit)
            self.total_requests += 1
            return self.total_requests

    def record_country(self, country: str) -> None:
        with self._lock:
            self.country_counts[country] = self.country_counts.get(country, 0) + 1

    def record_tokens(self, tokens: int) -> None:
        if tokens < 0:
            raise ValueError("token count must be non-negative, got {}".format(tokens))
        with self._lock:
            self.total_tokens += tokens

    def record_failure(self) -> None:
        with self._lock:
            self.failures += 1

    def snapshot(self) -> LedgerSnapshot:
        with self._lock:
            return LedgerSnapshot(
                total_requests=self.total_requests,
                failures=self.failures,
                total_tokens=self.total_tokens,
                country_counts=dict(self.country_counts),
            )
