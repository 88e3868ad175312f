"""Retry policies for queries and mutations."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from query_cache.errors import is_retryable
from settings import MUTATION_RETRIES, QUERY_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_DELAY

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]


def _any_exception(exc: BaseException) -> bool:
    return isinstance(exc, Exception)


def _log_retry(state: RetryCallState) -> None:
    name = getattr(state.fn, "__qualname__", None) or repr(state.fn)
    logger.warning(
        "Retrying {} in {:.1f}s (attempt {} failed: {})",
        name,
        state.next_action.sleep if state.next_action else 0.0,
        state.attempt_number,
        state.outcome.exception() if state.outcome else None,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """``retries`` extra attempts, waiting ``min(base * 2**n, max)`` before retry n."""

    retries: int
    should_retry: Callable[[BaseException], bool]
    base_delay: float = RETRY_BASE_DELAY
    max_delay: float = RETRY_MAX_DELAY
    sleep: Sleep = asyncio.sleep

    def delay(self, attempt_index: int) -> float:
        return min(self.base_delay * 2**attempt_index, self.max_delay)

    def retrying(self) -> AsyncRetrying:
        """A fresh tenacity controller; one per call."""
        return AsyncRetrying(
            sleep=self.sleep,
            stop=stop_after_attempt(self.retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception(self.should_retry),
            before_sleep=_log_retry,
            reraise=True,
        )

    async def call(self, fn: Callable[[], Awaitable[T]]) -> T:
        return await self.retrying()(fn)


def query_policy(retries: int = QUERY_RETRIES, sleep: Sleep = asyncio.sleep) -> RetryPolicy:
    """Permission and client errors never retry; everything else up to ``retries`` times."""
    return RetryPolicy(retries=retries, should_retry=is_retryable, sleep=sleep)


def mutation_policy(retries: int = MUTATION_RETRIES, sleep: Sleep = asyncio.sleep) -> RetryPolicy:
    """Mutations are not assumed idempotent: few retries, whatever the error class."""
    return RetryPolicy(retries=retries, should_retry=_any_exception, sleep=sleep)
