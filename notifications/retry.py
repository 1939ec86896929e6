"""
Notification Retry Policy.

Exponential backoff between attempts on one provider:
initial delay, multiplied after each failure, capped.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration for one provider.

    The default gives waits of 2s then 4s across three attempts.
    """

    max_attempts: int = 3
    """Total attempts, including the first."""

    initial_delay_seconds: float = 2.0
    """Wait after the first failed attempt."""

    backoff_multiplier: float = 2.0
    """Exponential backoff multiplier."""

    max_delay_seconds: float = 10.0
    """Maximum wait between attempts."""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        delay = self.initial_delay_seconds * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay_seconds)


# The API provider falls straight through to the next provider
SINGLE_ATTEMPT = RetryPolicy(max_attempts=1)
