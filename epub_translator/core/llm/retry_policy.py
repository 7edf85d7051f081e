"""
Retry policy with exponential backoff for translation requests.

This module provides the pure part of the retry logic:
- Delay calculation (x2 per attempt, x3 after a rate-limit response)
- The retry state machine and its transition function

The actual waiting is done by the caller through an injected sleep coroutine,
so the policy itself has no side effects.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..epub.exceptions import TranslationFailure

BACKOFF_FACTOR = 2.0
RATE_LIMIT_BACKOFF_FACTOR = 3.0


class RetryStage(Enum):
    """States of one unit's trip through the translation client."""
    PENDING = "pending"
    SENDING = "sending"
    RETRY_SCHEDULED = "retry_scheduled"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (RetryStage.SUCCESS, RetryStage.EXHAUSTED)


@dataclass
class RetryState:
    """Mutable bookkeeping for a single unit's retry loop.

    Attributes:
        attempt: Zero-based index of the current attempt
        delay: Last wait scheduled, in seconds (None before the first retry)
        last_status: HTTP status of the last failed attempt, if any
        network_error: True if the last attempt failed at transport level
        stage: Current state machine stage
    """
    attempt: int = 0
    delay: Optional[float] = None
    last_status: Optional[int] = None
    network_error: bool = False
    stage: RetryStage = RetryStage.PENDING

    @property
    def attempts_made(self) -> int:
        if self.stage is RetryStage.PENDING:
            return 0
        return self.attempt + 1


@dataclass(frozen=True)
class RetryDecision:
    """Result of the transition function after a failed attempt."""
    retry: bool
    delay: float
    next_stage: RetryStage


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff calculator.

    Attributes:
        base_delay: First wait in seconds
        max_retries: Retries allowed after the first attempt
    """
    base_delay: float = 2.0
    max_retries: int = 3

    def __post_init__(self):
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @property
    def max_attempts(self) -> int:
        """Total attempts allowed: the base attempt plus every retry."""
        return self.max_retries + 1

    def should_retry(self, attempt_index: int) -> bool:
        """True if another attempt may follow the (zero-based) attempt that just failed."""
        return attempt_index + 1 < self.max_attempts

    def next_delay(self, attempt_index: int, was_rate_limited: bool,
                   previous_delay: Optional[float] = None) -> float:
        """
        Calculate how long to wait before the attempt after `attempt_index`.

        The first wait is the base delay; every later wait is the previous
        one multiplied by 2. When the failure just observed was a rate-limit
        response, the multiplier for that step is 3 instead (the first wait
        becomes base * 3).

        Without `previous_delay` the earlier steps are assumed to have been
        ordinary failures, so attempt index i > 0 waits base * 2**(i-1) times the factor
        of the current step.

        Args:
            attempt_index: Zero-based index of the attempt that just failed
            was_rate_limited: Whether that attempt failed with HTTP 429
            previous_delay: The wait scheduled before that attempt, if known

        Returns:
            Delay in seconds
        """
        if attempt_index <= 0:
            return self.base_delay * (RATE_LIMIT_BACKOFF_FACTOR if was_rate_limited else 1.0)
        if previous_delay is None:
            previous_delay = self.base_delay * BACKOFF_FACTOR ** (attempt_index - 1)
        factor = RATE_LIMIT_BACKOFF_FACTOR if was_rate_limited else BACKOFF_FACTOR
        return previous_delay * factor

    def decide(self, state: RetryState, failure: TranslationFailure) -> RetryDecision:
        """Pure transition taken after a failed attempt."""
        if not self.should_retry(state.attempt):
            return RetryDecision(retry=False, delay=0.0, next_stage=RetryStage.EXHAUSTED)
        delay = self.next_delay(state.attempt, failure.is_rate_limited, state.delay)
        return RetryDecision(retry=True, delay=delay, next_stage=RetryStage.RETRY_SCHEDULED)

    def delay_schedule(self, rate_limited_steps=()) -> list:
        """Every wait a unit would go through if all attempts failed.

        Args:
            rate_limited_steps: Zero-based attempt indexes that failed with 429

        Returns:
            List of delays, one per retry
        """
        delays = []
        previous = None
        for attempt_index in range(self.max_retries):
            previous = self.next_delay(attempt_index, attempt_index in rate_limited_steps, previous)
            delays.append(previous)
        return delays
