"""Backoff strategies for the model-call chain.

A strategy answers two questions for one model: how long to wait before the
next attempt, and whether another attempt is allowed at all. The chain in
``narrative_radar.llm.caller`` owns the loop; strategies hold no state.

Example:
    >>> from narrative_radar.core.retry import LinearBackoff
    >>>
    >>> strategy = LinearBackoff(max_retries=2, base_delay=1.0)
    >>> [strategy.next_delay(attempt) for attempt in (1, 2)]
    [1.0, 2.0]
    >>> strategy.should_retry(2)
    False
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class RetryStrategy(ABC):
    """Abstract base for retry strategies."""

    max_retries: int

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: One-based number of the attempt that just failed

        Returns:
            Delay in seconds before the next attempt
        """
        ...

    @abstractmethod
    def should_retry(self, retries_done: int) -> bool:
        """Determine if another retry is allowed.

        Args:
            retries_done: Retries already made on this model (the first
                attempt is not a retry)
        """
        ...


@dataclass
class LinearBackoff(RetryStrategy):
    """Delay grows linearly with the attempt number.

    Delay = min(base_delay * attempt, max_delay)

    Attributes:
        max_retries: Additional attempts allowed after the first
        base_delay: Delay after the first failed attempt, in seconds
        max_delay: Upper bound on a single delay
    """

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 30.0

    def next_delay(self, attempt: int) -> float:
        """Calculate linear backoff delay."""
        return min(self.base_delay * max(attempt, 1), self.max_delay)

    def should_retry(self, retries_done: int) -> bool:
        """Check if retry should be attempted."""
        return retries_done < self.max_retries


@dataclass
class NoRetry(RetryStrategy):
    """No retry - each model gets exactly one attempt."""

    max_retries: int = 0

    def next_delay(self, attempt: int) -> float:
        """No delay needed."""
        return 0.0

    def should_retry(self, retries_done: int) -> bool:
        """Never retry."""
        return False
