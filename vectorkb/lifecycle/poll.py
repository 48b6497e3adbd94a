"""Deadline-bounded polling with exponential backoff and jitter."""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from .errors import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0


class PollLoop:
    """Repeats an operation until a predicate holds or a deadline passes.

    Every wait in a teardown goes through this class, with one shared absolute
    deadline, so retry behaviour is tuned in one place.

    Attributes:
        base_delay: Delay before the first retry, in seconds (before jitter)
        max_delay: Upper bound on a single delay, in seconds (before jitter)
        clock: Monotonic clock returning seconds
        sleep: Blocking sleep function
    """

    def __init__(
        self,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Optional[Callable[[], float]] = None,
    ) -> None:
        if base_delay <= 0:
            raise ValueError("base_delay must be positive")
        self.base_delay = base_delay
        self.max_delay = max(max_delay, base_delay)
        self.clock = clock
        self.sleep = sleep
        self._jitter = jitter or (lambda: random.uniform(0.5, 1.0))

    def backoff_delay(self, attempt: int) -> float:
        """Delay for a retry attempt: exponential, capped, scaled by jitter in [0.5, 1.0]."""
        exp = min(self.max_delay, self.base_delay * (2**attempt))
        return exp * self._jitter()

    def run(
        self,
        operation: Callable[[], T],
        predicate: Callable[[T], bool],
        deadline: float,
        description: str,
        retry_if: Optional[Callable[[Exception], bool]] = None,
    ) -> T:
        """Invoke `operation` until `predicate(result)` is true.

        Args:
            operation: Callable polled for a result
            predicate: Returns True when the result is satisfactory
            deadline: Absolute time on `clock` after which polling stops
            description: What is being waited for, used in logs and the timeout
            retry_if: Exceptions for which this returns True count as an
                unsatisfied attempt; all others propagate (optional)

        Returns:
            The first result that satisfied the predicate

        Raises:
            PollTimeoutError: If the deadline is reached first
        """
        attempt = 0

        while self.clock() < deadline:
            try:
                result = operation()
            except Exception as e:
                if retry_if is None or not retry_if(e):
                    raise
                logger.info(f"Attempt {attempt + 1} failed for {description}: {e}")
            else:
                if predicate(result):
                    return result

            attempt += 1
            remaining = deadline - self.clock()
            if remaining <= 0:
                break

            # Never sleep past the deadline
            delay = min(self.backoff_delay(attempt), remaining)
            logger.debug(f"Waiting {delay:.2f}s before retry {attempt + 1} for {description}")
            self.sleep(delay)

        logger.warning(f"Deadline reached after {attempt} attempt(s) waiting for {description}")
        raise PollTimeoutError(description)
