"""
Retry strategies - how long a failed job waits before it is eligible again.

    fixed:        60s, 60s, 60s
    linear:       60s, 120s, 180s
    exponential:  60s, 120s, 240s ... (capped at MAX_RETRY_DELAY)

The strategy only computes the delay. Whoever handles the failure turns it
into an execute_at and re-schedules the job.
"""

from enum import Enum

from jobqueue.exceptions import ConfigurationError

# One day. Exponential backoff never waits longer than this.
MAX_RETRY_DELAY = 86400

# 2**31 already dwarfs any sane base delay; stop growing the exponent there.
_MAX_EXPONENT = 31


class RetryStrategy(str, Enum):
    """Backoff policy applied between retries."""
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"

    def delay(self, attempt: int, base_delay: int) -> int:
        """
        Delay in seconds before the given attempt may run.

        Args:
            attempt: Attempt number (1 = first retry). Values below 1 count as 1.
            base_delay: Configured base delay in seconds.
        """
        attempt = max(1, int(attempt))
        base_delay = max(0, int(base_delay))

        if self is RetryStrategy.FIXED:
            return base_delay
        if self is RetryStrategy.LINEAR:
            return base_delay * attempt

        exponent = min(attempt - 1, _MAX_EXPONENT)
        return min(base_delay * (2 ** exponent), max(MAX_RETRY_DELAY, base_delay))

    @classmethod
    def parse(cls, value) -> "RetryStrategy":
        """Accept an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ConfigurationError(
                f"Unknown retry strategy {value!r} (expected one of: {valid})"
            ) from None
