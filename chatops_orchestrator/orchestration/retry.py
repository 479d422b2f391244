"""
Bounded exponential backoff around provider calls.

Only rate-limit and transient availability failures (429, 502, 503, 504)
are retried; the delay before retry ``n`` is ``base_delay * 2 ** (n - 1)``.
Every other exception propagates on the first attempt.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import is_retriable, status_code_of
from ..models import RetryConfig

logger = logging.getLogger(__name__)


def _log_retry(state: RetryCallState) -> None:
    error = state.outcome.exception() if state.outcome else None
    logger.warning(
        "Provider call failed with status %s (attempt %d), retrying in %.1fs",
        status_code_of(error) if error else None,
        state.attempt_number,
        state.next_action.sleep if state.next_action else 0.0,
    )


class RetryPolicy:
    """Retries a coroutine function on retriable provider errors."""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 3.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_config(
        cls,
        settings: RetryConfig,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> "RetryPolicy":
        return cls(settings.max_attempts, settings.base_delay, sleep=sleep)

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            reraise=True,
            sleep=self._sleep,
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            retry=retry_if_exception(is_retriable),
            before_sleep=_log_retry,
        )

    async def run(self, fn: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        async for attempt in self._retrying():
            with attempt:
                return await fn(*args, **kwargs)
