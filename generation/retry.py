"""
Reusable retry policy for async collaborator calls.

    retry = Retry(attempts=3, delay=fixed_delay(1.0))
    text = await retry.run(client.generate, prompt)

Any raised exception is retried, and so is an "empty" result (by default: None or
a blank string). After the last attempt RetryExhaustedError is raised carrying
the final error. The policy knows nothing about what it is retrying.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from generation.errors import RetryExhaustedError, ServiceError

log = logging.getLogger("generation.pipeline")

DelayStrategy = Callable[[int], float]


def fixed_delay(seconds: float) -> DelayStrategy:
    return lambda attempt: seconds


def linear_backoff(base: float) -> DelayStrategy:
    """base, 2×base, 3×base, ..."""
    return lambda attempt: base * attempt


def exponential_backoff(base: float, factor: float = 2.0, maximum: float = 30.0) -> DelayStrategy:
    return lambda attempt: min(maximum, base * (factor ** (attempt - 1)))


def is_empty_result(result: Any) -> bool:
    if result is None:
        return True
    if isinstance(result, str):
        return not result.strip()
    return False


class Retry:
    def __init__(
        self,
        attempts: int = 3,
        delay: DelayStrategy = fixed_delay(1.0),
        is_empty: Callable[[Any], bool] = is_empty_result,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.attempts = attempts
        self.delay = delay
        self.is_empty = is_empty
        self.sleep = sleep

    async def run(self, operation: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        last_error: Optional[Exception] = None
        for attempt in range(1, self.attempts + 1):
            try:
                result = await operation(*args, **kwargs)
                if not self.is_empty(result):
                    return result
                last_error = ServiceError("Empty response from generation service")
            except Exception as e:
                last_error = e

            if attempt < self.attempts:
                wait = self.delay(attempt)
                log.warning(f"[RETRY] attempt {attempt}/{self.attempts} failed: {last_error} — retrying in {wait:.1f}s")
                await self.sleep(wait)

        log.error(f"[RETRY] giving up after {self.attempts} attempts: {last_error}")
        raise RetryExhaustedError(
            f"Failed after {self.attempts} attempts: {last_error}",
            attempts=self.attempts,
            last_error=last_error,
        ) from last_error
