"""
Recovery Strategies

One configurable backoff policy shared by endpoint probing and JSON-RPC
reads, plus the retry strategy built on it.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Optional, TypeVar

from .errors import BubblesError, DataTimeoutError, classify_error

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = False
    jitter_factor: float = 0.1
    attempt_timeout_seconds: Optional[float] = None

    def get_delay(self, attempt: int) -> float:
        """Calculate delay after a failed attempt (0-based)."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


class BackoffPolicy:
    """
    Bounded retry with exponential backoff and a per-attempt timeout.

    ``run`` never loops unbounded: after ``max_attempts`` failures the last
    error is raised. Errors whose classification is not recoverable are
    raised immediately. A timed-out attempt is reported as ``DataTimeoutError``.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def single_attempt(cls, timeout_seconds: float, **kwargs: Any) -> "BackoffPolicy":
        """One try bounded by ``timeout_seconds`` (liveness probes)."""
        return cls(RetryConfig(max_attempts=1, attempt_timeout_seconds=timeout_seconds), **kwargs)

    async def run(
        self,
        operation: Callable[[], Coroutine[Any, Any, T]],
        description: str = "operation",
    ) -> T:
        last_error: Optional[BaseException] = None

        for attempt in range(self.config.max_attempts):
            try:
                return await self._attempt(operation)
            except Exception as e:
                last_error = e

                if not self.should_retry(e, attempt):
                    raise

                delay = self.config.get_delay(attempt)
                self.logger.warning(
                    f"{description}: attempt {attempt + 1}/{self.config.max_attempts} failed: {e!r}. "
                    f"Retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        raise last_error or RuntimeError("All retry attempts exhausted")

    async def _attempt(self, operation: Callable[[], Coroutine[Any, Any, T]]) -> T:
        timeout = self.config.attempt_timeout_seconds
        if timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise DataTimeoutError(f"timed out after {timeout}s") from exc

    def should_retry(self, error: Exception, attempt: int) -> bool:
        if attempt >= self.config.max_attempts - 1:
            return False
        if isinstance(error, BubblesError):
            return error.recoverable
        return classify_error(error).recoverable
