"""
Hemeroteca Retry Logic
======================

Retry mechanisms with exponential backoff and jitter for network fetches.
Only failures classified as retryable are retried; everything else is
raised on the first attempt.
"""

import asyncio
import inspect
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from ..utils.exceptions import is_retryable_error
from ..utils.logging import get_logger_for_component


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: bool = True
    exponential_base: float = 2.0

    @classmethod
    def from_fetch_settings(cls, fetch_settings) -> "RetryConfig":
        """Build a retry policy from the fetch section of the settings."""
        return cls(
            max_attempts=fetch_settings.max_attempts,
            base_delay=fetch_settings.backoff_base,
            max_delay=fetch_settings.backoff_max,
            jitter=fetch_settings.jitter,
        )


@dataclass
class RetryStatistics:
    """Counters for retry operations."""
    total_calls: int = 0
    total_attempts: int = 0
    total_successes: int = 0
    total_failures: int = 0
    delays: List[float] = field(default_factory=list)


class RetryManager:
    """Retry manager with exponential backoff."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        should_retry: Optional[Callable[[Exception], bool]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """Initialize retry manager.

        Args:
            config: Retry policy
            should_retry: Predicate deciding whether an exception is retried
            sleep: Awaitable used between attempts, asyncio.sleep by default
        """
        self.config = config or RetryConfig()
        self.should_retry = should_retry or is_retryable_error
        self._sleep = sleep or asyncio.sleep
        self.logger = get_logger_for_component("retry_manager")
        self.statistics = RetryStatistics()

    async def retry_async(
        self,
        func: Callable[..., Any],
        *args,
        config: Optional[RetryConfig] = None,
        operation: Optional[str] = None,
        **kwargs,
    ) -> Any:
        """Retry an async function with exponential backoff.

        Args:
            func: Async function to retry
            *args: Function arguments
            config: Override default retry configuration
            operation: Name used in log messages (defaults to function name)
            **kwargs: Function keyword arguments

        Returns:
            Function result if successful

        Raises:
            The last exception if all attempts fail, or the first
            non-retryable one
        """
        retry_config = config or self.config
        name = operation or getattr(func, "__name__", "operation")
        self.statistics.total_calls += 1

        for attempt in range(1, retry_config.max_attempts + 1):
            self.statistics.total_attempts += 1
            try:
                if inspect.iscoroutinefunction(func):
                    result = await func(*args, **kwargs)
                else:
                    result = func(*args, **kwargs)
                    if inspect.isawaitable(result):
                        result = await result

                self.statistics.total_successes += 1
                if attempt > 1:
                    self.logger.info(f"Retry successful for {name} on attempt {attempt}")
                return result

            except Exception as e:
                if not self.should_retry(e):
                    self.statistics.total_failures += 1
                    self.logger.debug(f"Not retrying {name}: {e}")
                    raise

                if attempt >= retry_config.max_attempts:
                    self.statistics.total_failures += 1
                    self.logger.warning(
                        f"All {retry_config.max_attempts} attempts failed for {name}: {e}"
                    )
                    raise

                delay = self.calculate_delay(attempt, retry_config)
                self.statistics.delays.append(delay)
                self.logger.warning(
                    f"Attempt {attempt} failed for {name}: {e}. "
                    f"Retrying in {delay:.2f}s (attempt {attempt + 1}/{retry_config.max_attempts})"
                )
                await self._sleep(delay)

    def calculate_delay(self, attempt: int, config: Optional[RetryConfig] = None) -> float:
        """Calculate delay before the attempt following ``attempt``."""
        config = config or self.config
        delay = min(config.base_delay * (config.exponential_base ** (attempt - 1)), config.max_delay)

        if config.jitter:
            # ±25% jitter
            jitter_amount = delay * 0.25
            delay += random.uniform(-jitter_amount, jitter_amount)

        return max(0.0, min(delay, config.max_delay))
