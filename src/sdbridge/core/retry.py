"""Retry policy for calls against the generation service."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

# Statuses that indicate a transient condition on the service side.
RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429})


def is_retryable_status(status_code: int) -> bool:
    """Return True for 5xx, 429 (too many requests) and 408 (request timeout)."""
    return 500 <= status_code < 600 or status_code in RETRYABLE_STATUSES


class RetryPolicy(BaseModel):
    """Capped exponential backoff for the generation client.

    The policy is immutable; a client keeps one for its whole lifetime and
    individual calls may pass a different one.

    Args:
        max_retries: Retries allowed after the first attempt
        initial_delay: Delay in seconds before the first retry
        max_delay: Ceiling in seconds for any single delay
        factor: Multiplier applied per retry

    Notes:
        - There is no jitter: delays are ``initial_delay * factor**attempt``
          capped at ``max_delay``, so consecutive delays never decrease
        - Total attempts for a call are ``max_retries + 1``
    """

    model_config = {"frozen": True}

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=10.0, ge=0.0)
    factor: float = Field(default=2.0, ge=1.0)

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info) -> float:
        """Ensure max_delay >= initial_delay."""
        initial = info.data.get("initial_delay", 1.0)
        if v < initial:
            raise ValueError("max_delay must be >= initial_delay")
        return v

    def compute_delay(self, attempt: int) -> float:
        """Compute the delay before retry number ``attempt + 1``.

        Args:
            attempt: Zero-based retry counter (0 = first retry)

        Returns:
            Delay in seconds
        """
        return min(self.initial_delay * (self.factor**attempt), self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        """Check whether another retry is allowed after ``attempt`` retries."""
        return attempt < self.max_retries
