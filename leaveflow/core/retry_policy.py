"""Retry Scheduler — decides what a notification becomes after a send attempt.

Invariants:
    - Success -> SENT with sent_at = now and no error message
    - Failure increments retry_count exactly once per attempt
    - retry_count >= max_retries -> FAILED, terminal, next_retry_at cleared
    - Otherwise RETRY with next_retry_at = now + backoff(retry_count)
    - backoff(n) = min(max_delay, base_delay * 2**(n-1)), optionally jittered

Design Decisions:
    - Returns an immutable SendOutcome instead of touching storage: the
      dispatcher applies it with one guarded UPDATE
    - Random source injectable so jittered schedules stay testable
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from leaveflow.core.domain_types import NotificationStatus


@dataclass(frozen=True)
class SendOutcome:
    """Fields to persist on the notification row after an attempt."""
    status: NotificationStatus
    retry_count: int
    sent_at: datetime | None = None
    next_retry_at: datetime | None = None
    error_message: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (NotificationStatus.SENT, NotificationStatus.FAILED)


class RetryScheduler:
    """Exponential backoff with a cap and a terminal failure after max attempts."""

    def __init__(
        self,
        base_delay: timedelta = timedelta(minutes=5),
        max_delay: timedelta = timedelta(hours=24),
        jitter_ratio: float = 0.0,
        rng: Callable[[float, float], float] = random.uniform,
    ):
        if base_delay <= timedelta(0):
            raise ValueError("base_delay must be positive")
        if max_delay < base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if not 0.0 <= jitter_ratio < 1.0:
            raise ValueError("jitter_ratio must be in [0, 1)")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_ratio = jitter_ratio
        self._rng = rng

    def backoff(self, retry_count: int) -> timedelta:
        """Delay before attempt number retry_count + 1."""
        exponent = max(retry_count - 1, 0)
        # Cap the exponent before multiplying to keep timedelta in range
        if exponent > 40:
            delay = self.max_delay
        else:
            delay = min(self.max_delay, self.base_delay * (2 ** exponent))
        if self.jitter_ratio:
            factor = self._rng(1 - self.jitter_ratio, 1 + self.jitter_ratio)
            delay = min(self.max_delay, delay * factor)
        return delay

    def on_success(self, retry_count: int, now: datetime) -> SendOutcome:
        return SendOutcome(
            status=NotificationStatus.SENT,
            retry_count=retry_count,
            sent_at=now,
        )

    def on_failure(
        self,
        retry_count: int,
        max_retries: int,
        error: str,
        now: datetime,
    ) -> SendOutcome:
        attempts = retry_count + 1
        if attempts >= max_retries:
            return SendOutcome(
                status=NotificationStatus.FAILED,
                retry_count=attempts,
                error_message=f"Failed after {attempts} attempt(s): {error}",
            )
        return SendOutcome(
            status=NotificationStatus.RETRY,
            retry_count=attempts,
            next_retry_at=now + self.backoff(attempts),
            error_message=f"Retry {attempts} of {max_retries}: {error}",
        )
