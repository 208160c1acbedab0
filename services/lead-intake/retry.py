"""Retry policy for LLM extraction calls.

Exponential backoff between attempts (initial_delay * backoff ** (n - 1)),
built on tenacity. The sleep function is injectable so tests run instantly.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

__all__ = ["RetryError", "RetryPolicy"]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff: float = 2.0
    max_delay: float = 60.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.EXTRACTION_RETRY_ATTEMPTS,
            initial_delay=settings.EXTRACTION_RETRY_DELAY,
            backoff=settings.EXTRACTION_RETRY_BACKOFF,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.initial_delay * self.backoff ** (attempt - 1), self.max_delay)

    def delays(self) -> list[float]:
        """Every wait in a fully failing run. No wait follows the last attempt."""
        return [self.delay_for(n) for n in range(1, self.max_attempts)]

    async def call(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
    ) -> T:
        """Await fn(*args) until it succeeds or attempts run out.

        Raises tenacity.RetryError once attempts are exhausted; exceptions
        outside retry_on propagate immediately.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff,
                max=self.max_delay,
            ),
            sleep=self.sleep,
            reraise=False,
            before_sleep=lambda state: logger.warning(
                "Extraction attempt %d/%d failed (%s), retrying in %.1fs",
                state.attempt_number,
                self.max_attempts,
                state.outcome.exception(),  # type: ignore[union-attr]
                state.next_action.sleep,  # type: ignore[union-attr]
            ),
        )
        return await retrying(fn, *args)
