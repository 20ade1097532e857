"""Retry helper for storage writes."""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Callable, TypeVar

T = TypeVar("T")


def retry(
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator with linear back-off: waits ``backoff_seconds * attempt``.

    No wait follows the final attempt; its exception is re-raised.

    Usage::

        @retry(max_attempts=3, backoff_seconds=1.0)
        def upload(...): ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            logger = logging.getLogger(func.__module__)
            last_exc: BaseException | None = None
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as exc:
                    last_exc = exc
                    if attempt == max_attempts:
                        break
                    wait = backoff_seconds * attempt
                    logger.warning(
                        "Attempt %d/%d for %s failed: %s, retrying in %.1fs",
                        attempt,
                        max_attempts,
                        func.__name__,
                        exc,
                        wait,
                    )
                    sleep(wait)
            raise last_exc  # type: ignore[misc]

        return wrapper

    return decorator
