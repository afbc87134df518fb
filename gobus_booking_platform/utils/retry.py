"""
Bounded retries with exponential backoff for transient storage failures.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type

from ..config import get_settings

logger = logging.getLogger(__name__)

ExceptionTypes = Tuple[Type[BaseException], ...]


@dataclass
class RetryConfig:
    """Retry budget: how many attempts and how long to wait between them."""
    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    exponential_base: float = 2.0
    jitter: bool = True

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        """Build the storage retry budget from application settings."""
        settings = get_settings()
        return cls(
            max_attempts=settings.max_retry_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given zero-based attempt."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            # Spread concurrent retries of the same seat apart
            delay *= 0.5 + random.random() * 0.5
        return delay


async def retry_async(
    func: Callable[..., Awaitable[Any]],
    *args,
    config: RetryConfig,
    retry_on: ExceptionTypes,
    give_up_on: ExceptionTypes = (),
    **kwargs
) -> Any:
    """
    Await ``func`` until it succeeds or the retry budget runs out.

    Args:
        func: Coroutine function making one attempt
        config: Retry budget
        retry_on: Exceptions worth another attempt
        give_up_on: Exceptions re-raised at once, even when they subclass ``retry_on``

    Returns:
        The result of the first successful attempt

    Raises:
        The error of the last attempt once the budget is spent
    """
    name = getattr(func, "__name__", repr(func))
    attempt = 0

    while True:
        try:
            result = await func(*args, **kwargs)
        except give_up_on:
            raise
        except retry_on as e:
            attempt += 1
            if attempt >= config.max_attempts:
                logger.error(f"{name} failed after {attempt} attempts: {e}")
                raise

            delay = config.delay_for(attempt - 1)
            logger.warning(f"{name} attempt {attempt} failed: {e}. Retrying in {delay:.2f}s")
            await asyncio.sleep(delay)
        else:
            if attempt:
                logger.info(f"{name} succeeded on attempt {attempt + 1}")
            return result
