"""
Retry policy for scrapes that may hit transient timeouts.

Only timeout-class failures are retried. Anything else (a missing element,
an unparsable identifier) means the page changed shape and retrying would
just repeat the failure.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from playwright.async_api import TimeoutError as PlaywrightTimeout
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from dartsync.config import settings
from dartsync.exceptions import NakkaTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    PlaywrightTimeout,
    asyncio.TimeoutError,
    NakkaTimeout,
)


def is_timeout_error(exc: BaseException) -> bool:
    return isinstance(exc, RETRYABLE_ERRORS)


@dataclass
class RetryPolicy:
    """
    Exponential backoff for timeout errors.

    With the defaults (4 attempts, base delay 1s) a scrape that keeps timing
    out is tried 4 times with 1s, 2s and 4s pauses in between, then the last
    timeout is re-raised.

    Usage:
        policy = RetryPolicy()
        rows = await policy.run(lambda: scrape_once(href), description=href)

    Pass a callable that creates a fresh coroutine per attempt, not a
    coroutine object.
    """

    max_attempts: int = field(default_factory=lambda: settings.scrape_retry_attempts)
    base_delay: float = field(default_factory=lambda: settings.scrape_retry_base_delay)
    should_retry: Callable[[BaseException], bool] = is_timeout_error
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def delays(self) -> list[float]:
        """Pauses between attempts, in order."""
        return [self.base_delay * (2 ** i) for i in range(self.max_attempts - 1)]

    async def run(self, coro_func: Callable[[], Awaitable[T]], description: str = "Operation") -> T:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2, min=0),
            retry=retry_if_exception(self.should_retry),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self.sleep,
            reraise=True,
        )
        logger.debug("Running %s with up to %d attempts", description, self.max_attempts)
        return await retrying(coro_func)
