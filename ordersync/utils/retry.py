"""
Consistent retry and timeout behavior across all external services.
Bounded retries, exponential backoff, a hard deadline per call.
"""
import asyncio
import functools
from typing import Awaitable, Callable, Optional, TypeVar

from ordersync.config import config
from ordersync.errors import NetworkError, RetryExhaustedError
from ordersync.logger import logger
from ordersync.sentry import capture_retry_exhaustion

T = TypeVar("T")


def async_retry(
    max_retries: Optional[int] = None,
    backoff_factor: Optional[float] = None,
    exceptions: tuple = (NetworkError,)
):
    """
    Retry decorator for async functions.

    Args:
        max_retries: Maximum retry attempts (default from config, 0 disables retries)
        backoff_factor: Exponential backoff factor (default from config)
        exceptions: Exceptions to catch and retry
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            max_tries = max_retries if max_retries is not None else config.MAX_RETRIES
            backoff = backoff_factor if backoff_factor is not None else config.RETRY_BACKOFF

            for attempt in range(max_tries + 1):
                try:
                    if attempt > 0:
                        logger.info(
                            f"Retry attempt {attempt}/{max_tries} for {func.__name__}"
                        )

                    return await func(*args, **kwargs)

                except exceptions as e:
                    if attempt == max_tries:
                        logger.error(
                            f"Max retries ({max_tries}) exhausted for {func.__name__}: {e}"
                        )
                        capture_retry_exhaustion(
                            func.__name__, attempt + 1, str(e), {"exception": type(e).__name__}
                        )
                        raise RetryExhaustedError(
                            f"Service {func.__name__} failed after {max_tries} retries: {str(e)}"
                        ) from e

                    delay = backoff ** attempt
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_tries + 1} failed for {func.__name__}. "
                        f"Retrying in {delay:.2f}s. Error: {e}"
                    )

                    await asyncio.sleep(delay)

        return wrapper
    return decorator


async def with_timeout(awaitable: Awaitable[T], operation: str, timeout: Optional[float] = None) -> T:
    """
    Await an external call under a deadline.

    Raises:
        NetworkError: If the deadline passes first
    """
    deadline = config.EXTERNAL_CALL_TIMEOUT if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=deadline)
    except asyncio.TimeoutError as e:
        raise NetworkError(f"{operation} timed out after {deadline}s") from e
