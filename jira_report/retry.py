from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx

BASE_DELAY_SECONDS = 0.2
TOO_MANY_REQUESTS = 429


@dataclass(frozen=True)
class RetryDecision:
    should_retry: bool
    delay: float = 0.0


NO_RETRY = RetryDecision(False, 0.0)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Linear backoff for transient Jira failures.
    Retries connectivity errors, 429 and 5xx; never other 4xx.
    """

    retry_count: int = 3
    base_delay: float = BASE_DELAY_SECONDS

    def decide(
        self,
        attempt: int,
        status_code: Optional[int] = None,
        error: Optional[BaseException] = None,
    ) -> RetryDecision:
        if attempt <= 0 or attempt > self.retry_count:
            return NO_RETRY

        if isinstance(error, httpx.TransportError):
            return RetryDecision(True, self.base_delay * attempt)

        if status_code is not None and is_retryable_status(status_code):
            return RetryDecision(True, self.base_delay * attempt)

        return NO_RETRY


def is_retryable_status(status_code: int) -> bool:
    return status_code == TOO_MANY_REQUESTS or status_code >= 500
