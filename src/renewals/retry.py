"""Retry helpers for spreadsheet downloads."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar
from urllib.error import HTTPError, URLError

from .config import RetryPolicy

T = TypeVar("T")

# client errors that can clear up on their own
_RETRYABLE_HTTP_CODES = {408, 425, 429}


class CircuitBreakerOpen(RuntimeError):
    """Raised when a circuit breaker has been tripped for the operation."""


@dataclass
class CircuitBreaker:
    """Tracks consecutive failures for one source across repeated loads."""

    threshold: int
    consecutive_failures: int = 0

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self) -> None:
        if self.threshold <= 0:
            return
        self.consecutive_failures += 1

    @property
    def is_open(self) -> bool:
        return self.threshold > 0 and self.consecutive_failures >= self.threshold


def is_transient_download_error(exc: BaseException) -> bool:
    """True for failures a later download attempt may not hit again.

    Server errors, throttling, timeouts and connection problems are transient.
    A 404 or 403 is not, and neither is a malformed URL.
    """

    if isinstance(exc, HTTPError):
        return exc.code >= 500 or exc.code in _RETRYABLE_HTTP_CODES
    if isinstance(exc, URLError):
        return not isinstance(exc.reason, ValueError)
    return isinstance(exc, OSError)


def execute_with_retry(
    action: Callable[[float], T],
    *,
    policy: RetryPolicy,
    description: str,
    logger,
    breaker: Optional[CircuitBreaker] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    sleeper: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``action(timeout)`` until it succeeds or ``policy.retries`` is spent.

    Backoff doubles per attempt starting at ``policy.backoff_factor`` seconds.
    An error rejected by ``should_retry`` ends the attempts at once. The last
    exception is re-raised unchanged and counts once against ``breaker``.
    """

    if breaker and breaker.is_open:
        raise CircuitBreakerOpen(f"Circuit breaker open for {description}")

    attempt = 0
    while True:
        try:
            result = action(policy.timeout_seconds)
        except Exception as exc:
            attempt += 1
            retryable = should_retry is None or should_retry(exc)
            if not retryable or attempt > policy.retries:
                if breaker:
                    breaker.record_failure()
                if not retryable:
                    logger.error("Not retrying %s after error: %s", description, exc)
                raise
            delay = max(0.0, policy.backoff_factor * (2 ** (attempt - 1)))
            logger.warning(
                "Retrying %s in %.2fs (%d/%d attempts) after error: %s",
                description,
                delay,
                attempt,
                policy.retries,
                exc,
            )
            if delay:
                sleeper(delay)
            continue
        if breaker:
            breaker.record_success()
        return result


__all__ = ["CircuitBreaker", "CircuitBreakerOpen", "execute_with_retry", "is_transient_download_error"]
