"""
Retry handling for ONTAP API calls.

Each remote operation (volume listing, quota status, quota report pages)
runs through ``RetryHandler.execute_with_retry``: transient failures are
retried with exponential backoff. Nothing is remembered between calls.
"""

import time
import random
from typing import Callable, Any, Optional, Dict, List
from dataclasses import dataclass, field

from netapp_exporter.exceptions import ExporterError
from netapp_exporter.logging_config import get_logger


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    exponential_base: float = 2.0
    jitter: bool = True


@dataclass
class RetryAttempt:
    """Information about a single attempt."""
    attempt_number: int
    delay: float
    error: Optional[Exception] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryResult:
    """Outcome of ``execute_with_retry``."""
    success: bool
    result: Any = None
    error: Optional[Exception] = None
    attempts: List[RetryAttempt] = field(default_factory=list)
    total_duration: float = 0.0


class RetryHandler:
    """
    Runs callables with retries.

    Holds only its configuration and is safe to share between threads.
    """

    def __init__(self, config: RetryConfig):
        self.config = config

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Decide whether a failed attempt is worth repeating.

        Only exporter errors flagged ``retryable`` (network problems,
        timeouts, 5xx answers) are retried.
        """
        if attempt >= self.config.max_attempts:
            return False

        if isinstance(error, ExporterError):
            return error.retryable

        return False

    def calculate_delay(self, attempt: int, error: Optional[Exception] = None) -> float:
        """Exponential backoff capped at max_delay. A zero base delay disables waiting."""
        base_delay = self.config.base_delay
        if base_delay and isinstance(error, ExporterError) and error.retry_after:
            base_delay = max(base_delay, error.retry_after)

        delay = base_delay * (self.config.exponential_base ** (attempt - 1))

        if self.config.jitter and delay > 0:
            jitter_range = delay * 0.1
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, min(delay, self.config.max_delay))

    def execute_with_retry(self,
                           func: Callable,
                           *args,
                           context: Optional[Dict] = None,
                           **kwargs) -> RetryResult:
        """
        Execute ``func(*args, **kwargs)`` until it succeeds or retries run out.

        Args:
            func: Function to execute
            *args: Function arguments
            context: Additional context for log messages
            **kwargs: Function keyword arguments

        Returns:
            RetryResult; never raises for failures of ``func``
        """
        logger = get_logger(__name__)
        logger.set_context(operation=getattr(func, '__name__', 'call'), **(context or {}))

        start_time = time.time()
        attempts: List[RetryAttempt] = []

        for attempt in range(1, self.config.max_attempts + 1):
            try:
                result = func(*args, **kwargs)
            except Exception as error:
                if self.should_retry(error, attempt):
                    delay = self.calculate_delay(attempt, error)
                    attempts.append(RetryAttempt(attempt_number=attempt, delay=delay, error=error))
                    logger.warning(f"Attempt {attempt} failed: {str(error)[:200]}, retrying in {delay:.1f}s")
                    if delay > 0:
                        time.sleep(delay)
                    continue

                attempts.append(RetryAttempt(attempt_number=attempt, delay=0, error=error))
                logger.debug(f"Giving up after {attempt} attempt(s): {str(error)[:200]}")
                return RetryResult(
                    success=False,
                    error=error,
                    attempts=attempts,
                    total_duration=time.time() - start_time
                )

            attempts.append(RetryAttempt(attempt_number=attempt, delay=0))
            if attempt > 1:
                logger.info(f"Operation succeeded on attempt {attempt}")

            return RetryResult(
                success=True,
                result=result,
                attempts=attempts,
                total_duration=time.time() - start_time
            )

        # max_attempts < 1
        return RetryResult(
            success=False,
            error=ExporterError("Maximum retry attempts exceeded"),
            attempts=attempts,
            total_duration=time.time() - start_time
        )


def create_retry_config(max_attempts: int = 3,
                        base_delay: float = 1.0,
                        max_delay: float = 10.0,
                        exponential_base: float = 2.0) -> RetryConfig:
    """Create a retry configuration with common settings."""
    return RetryConfig(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        exponential_base=exponential_base
    )
