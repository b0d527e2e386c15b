"""Retry policy for calls to external services."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def linear_backoff(attempt: int, base_delay: float) -> float:
    """Delay before the next attempt: ``attempt * base_delay`` seconds."""
    return attempt * base_delay


@dataclass
class RetryPolicy:
    """Bounded retry with a pluggable backoff.

    Exceptions listed in ``fatal`` are re-raised immediately; any other
    exception is retried until ``max_attempts`` is reached, after which the
    last exception is raised.
    """

    max_attempts: int = 3
    base_delay: float = 2.0
    backoff: Callable[[int, float], float] = linear_backoff
    fatal: tuple[type[BaseException], ...] = ()
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        return self.backoff(attempt, self.base_delay)

    def call(self, fn: Callable[[], T], description: str = "call") -> tuple[T, int]:
        """Run ``fn`` until it succeeds.

        Returns:
            Tuple of (result, attempt number that succeeded).
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return fn(), attempt
            except self.fatal:
                raise
            except Exception as e:
                if attempt == self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    "%s attempt %d/%d failed: %s (retrying in %.1fs)",
                    description, attempt, self.max_attempts, e, delay,
                )
                self.sleep(delay)
        raise AssertionError("unreachable")
