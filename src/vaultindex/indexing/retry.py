"""Retry with exponential backoff for embedding requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import litellm

from vaultindex.exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class BackoffConfig:
    """Exponential backoff: delay(n) = min(starting_delay * time_multiple**n, max_delay).

    Attributes:
        num_of_attempts: Maximum number of attempts, including the first.
        starting_delay: Delay in seconds before the second attempt.
        time_multiple: Multiplier applied per further attempt.
        max_delay: Upper bound on any single delay, in seconds.
    """

    num_of_attempts: int = 8
    starting_delay: float = 2.0
    time_multiple: float = 2.0
    max_delay: float = 60.0


def calculate_delay(attempt: int, config: BackoffConfig) -> float:
    """Delay in seconds after the failed 0-based *attempt*."""
    return min(config.starting_delay * (config.time_multiple**attempt), config.max_delay)


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for provider rate limits: our own, LiteLLM's, or anything carrying 429."""
    if isinstance(exc, (RateLimitExceededError, litellm.RateLimitError)):
        return True
    return getattr(exc, "status", None) == 429 or getattr(exc, "status_code", None) == 429


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    config: BackoffConfig,
    retry: Callable[[Exception], bool],
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Await *operation* until it succeeds, *retry* rejects the error, or attempts run out.

    The last error is re-raised unchanged.
    """
    attempts = max(1, config.num_of_attempts)
    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            if attempt + 1 >= attempts or not retry(exc):
                raise
            delay = calculate_delay(attempt, config)
            logger.debug(
                "Attempt %d/%d failed (%s); retrying in %.1fs", attempt + 1, attempts, exc, delay
            )
            await sleep(delay)
    raise AssertionError("unreachable")
