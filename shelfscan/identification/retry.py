"""
Bounded retry with delay, shared by every source adapter.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from loguru import logger

from shelfscan.identification.exceptions import (
    RetryExhaustedError,
    TransientSourceError,
)


T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt ceiling and delay between attempts.

    The delay before attempt ``n + 1`` is ``delay * backoff ** (n - 1)``;
    the default backoff of 1.0 gives a fixed delay.
    """

    attempts: int = 3
    delay: float = 1.0
    backoff: float = 1.0
    retry_on: tuple[type[BaseException], ...] = (TransientSourceError,)

    def delay_after(self, attempt: int) -> float:
        return self.delay * (self.backoff ** (attempt - 1))

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        source: str = "source",
    ) -> T:
        """
        Run ``operation`` until it succeeds or the attempt ceiling is hit.

        Exceptions outside ``retry_on`` propagate immediately.

        Raises:
            RetryExhaustedError: After the last failed attempt
        """
        last_error = None

        for attempt in range(1, max(self.attempts, 1) + 1):
            try:
                return await operation()
            except self.retry_on as e:
                last_error = e
                logger.warning(f"{source} attempt {attempt}/{self.attempts} failed: {e}")

                if attempt < self.attempts:
                    await asyncio.sleep(self.delay_after(attempt))

        raise RetryExhaustedError(source, self.attempts, last_error)


NO_RETRY = RetryPolicy(attempts=1, delay=0.0)
