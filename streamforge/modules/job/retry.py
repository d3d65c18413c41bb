"""Retry policy for video processing jobs."""

from typing import Sequence


class RetryConfig:
    """Attempt cap and explicit backoff schedule.

    ``backoff[i]`` is the delay applied after the (i+1)-th failed attempt.
    Attempts past the end of the schedule reuse its last value.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff: Sequence[float] = (60.0, 300.0, 600.0),
        timeout: float = 3600.0,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not backoff:
            raise ValueError("backoff schedule must not be empty")
        if any(delay < 0 for delay in backoff):
            raise ValueError("backoff delays must not be negative")
        if timeout <= 0:
            raise ValueError("timeout must be positive")

        self.max_attempts = max_attempts
        self.backoff = tuple(float(delay) for delay in backoff)
        self.timeout = float(timeout)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate the delay before the next attempt.

        Args:
            attempt: The attempt that just failed (1-indexed).

        Returns:
            The delay in seconds.
        """
        if attempt < 1:
            return self.backoff[0]
        index = min(attempt - 1, len(self.backoff) - 1)
        return self.backoff[index]

    def should_retry(self, attempt: int, retryable: bool = True) -> bool:
        """Check whether a failed attempt gets another try."""
        return retryable and attempt < self.max_attempts

    def __repr__(self) -> str:
        return (
            f"RetryConfig(max_attempts={self.max_attempts}, "
            f"backoff={list(self.backoff)}, timeout={self.timeout})"
        )

