"""Bounded retry for completion calls.

with_retry() runs an async callable until it succeeds or a per-kind attempt limit
runs out, and reports the outcome as a tagged result instead of raising:

    Ok(value)                     success
    Exhausted(last, attempts)     gave up; ``last`` is RateLimited or ParseError,
                                  or None for a non-retryable error

Rate limits back off exponentially with jitter; parse errors retry at once.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .config import RetryConfig
from .errors import CompletionRateLimited, MalformedCompletionResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    max_rate_limit_attempts: int = 3
    max_parse_attempts: int = 2
    base_delay: float = 2.0
    max_jitter: float = 0.5

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(**config.model_dump())

    def backoff(self, attempt: int) -> float:
        return self.base_delay * (2 ** (attempt - 1)) + random.uniform(0, self.max_jitter)


@dataclass
class Ok(Generic[T]):
    value: T
    attempts: int = 1


@dataclass
class RateLimited:
    error: Exception


@dataclass
class ParseError:
    error: Exception


@dataclass
class Exhausted:
    last: RateLimited | ParseError | None
    attempts: int
    error: Exception | None = None


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
) -> "Ok[T] | Exhausted":
    """Call ``fn`` under ``policy``; never raises for failures of ``fn``."""
    policy = policy or RetryPolicy()
    rate_limited = 0
    parse_errors = 0
    attempts = 0

    while True:
        attempts += 1
        try:
            return Ok(await fn(), attempts)
        except CompletionRateLimited as exc:
            rate_limited += 1
            outcome: RateLimited | ParseError = RateLimited(exc)
            if rate_limited >= policy.max_rate_limit_attempts:
                logger.error("Max retries reached after rate limiting (%d attempts)", attempts)
                return Exhausted(outcome, attempts, exc)
            delay = policy.backoff(rate_limited)
            logger.warning("Rate limited, retrying in %.1fs (attempt %d)", delay, attempts)
            await asyncio.sleep(delay)
        except MalformedCompletionResponse as exc:
            parse_errors += 1
            outcome = ParseError(exc)
            if parse_errors >= policy.max_parse_attempts:
                logger.error("Unusable response after %d attempts: %s", attempts, exc)
                return Exhausted(outcome, attempts, exc)
            logger.warning("Unusable response (%s), retrying", exc)
        except Exception as exc:
            logger.warning("Non-retryable error on attempt %d: %s", attempts, exc)
            return Exhausted(None, attempts, exc)
