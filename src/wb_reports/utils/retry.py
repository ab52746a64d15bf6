"""
Retry policy with exponential backoff for upstream calls.

A single RetryPolicy value is injected into the HTTP client so that every
call site shares the same attempt budget and delay schedule instead of
carrying its own constants.
"""

import random
from dataclasses import dataclass
from typing import Optional, Mapping

from wb_reports.utils.logger import get_logger


logger = get_logger(__name__)

RETRY_HINT_HEADERS = ("X-Ratelimit-Retry", "Retry-After")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 5
    base_delay: float = 2.0  # also the wait used when a 429 carries no hint
    max_delay: float = 60.0
    jitter: float = 0.25  # fraction of the delay, applied as +/- random variation
    exponential_base: float = 2.0
    max_retry_hint: float = 300.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")

    def backoff_delay(self, attempt: int) -> float:
        """
        Calculate exponential backoff delay for a failed attempt.

        Args:
            attempt: Zero-based index of the attempt that failed

        Returns:
            Delay in seconds, jittered and capped at max_delay
        """
        delay = self.base_delay * (self.exponential_base ** attempt)

        if self.jitter:
            jitter_range = delay * self.jitter
            delay += random.uniform(-jitter_range, jitter_range)

        delay = max(0.0, min(delay, self.max_delay))
        logger.debug(f"Calculated retry delay: {delay:.2f}s (attempt {attempt + 1})")
        return delay

    def throttle_delay(self, retry_hint: Optional[float]) -> float:
        """
        Delay before re-issuing a throttled request.

        The upstream hint is used as-is when present and sane; otherwise the
        fixed base delay applies.
        """
        if retry_hint is not None and 0 <= retry_hint <= self.max_retry_hint:
            return retry_hint
        if retry_hint is not None:
            logger.warning(f"Retry hint too large ({retry_hint}s), using {self.base_delay}s")
        return self.base_delay


def parse_retry_hint(headers: Mapping[str, str]) -> Optional[float]:
    """
    Read the retry hint from throttling response headers.

    Args:
        headers: Response headers (case-insensitive mapping)

    Returns:
        Seconds to wait, or None when no usable header is present
    """
    for header in RETRY_HINT_HEADERS:
        value = headers.get(header)
        if value is None or value == "":
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid {header} header: {value}")
    return None
