"""
Retry/backoff policy for outbound Acuity calls.

Only rate-limit responses (HTTP 429) are retried. Everything else - client
errors, server errors, timeouts, malformed bodies - propagates on the first
attempt.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional

from ..errors import RateLimitedError

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Exponential backoff on rate limits, bounded attempt count"""

    def __init__(
        self,
        max_retries: int = 2,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.sleep = sleep or asyncio.sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1`` (attempt is 0-based)"""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def call(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        attempt = 0
        while True:
            try:
                return await fn(*args, **kwargs)
            except RateLimitedError:
                if attempt >= self.max_retries:
                    logger.warning(
                        f"❌ Acuity rate limit persisted after {attempt + 1} attempts ({fn.__name__})"
                    )
                    raise
                delay = self.backoff_delay(attempt)
                logger.info(
                    f"🔄 Acuity rate limited on {fn.__name__}, retry {attempt + 1}/{self.max_retries} in {delay:.1f}s"
                )
                await self.sleep(delay)
                attempt += 1

    def wrap(self, fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        """Return a drop-in replacement for fn that applies this policy"""

        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            return await self.call(fn, *args, **kwargs)

        return wrapper
