"""Utility functions for AuraMail."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

import structlog

from auramail.config import Settings

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def configure_logging(settings: Settings) -> None:
    """Configure structlog to filter below the configured level."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )


def retry_on_failure(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    *,
    no_retry: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], Awaitable[Any]] | None = None,
) -> Callable[[F], F]:
    """Decorator to retry a coroutine function on failure with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts.
        delay: Initial delay between retries in seconds.
        backoff: Multiplier for delay after each retry.
        no_retry: Exception types that are re-raised immediately.
        sleep: Awaitable sleep used between attempts. Defaults to asyncio.sleep.

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except no_retry:
                    raise
                except Exception as e:
                    if attempt >= max_retries:
                        logger.error(
                            "function_retry_exhausted",
                            function=func.__name__,
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise
                    logger.warning(
                        "function_retry",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=current_delay,
                        error=str(e),
                    )
                    await (sleep or asyncio.sleep)(current_delay)
                    current_delay *= backoff

        return wrapper  # type: ignore

    return decorator
