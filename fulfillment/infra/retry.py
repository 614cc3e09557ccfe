"""
Retry decorator with exponential backoff and optional jitter.
"""
import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Iterator, TypeVar

T = TypeVar('T')

logger = logging.getLogger(__name__)


def backoff_delays(
    initial_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
) -> Iterator[float]:
    """Yield the pause before each retry; jitter adds up to 25%."""
    delay = initial_delay
    while True:
        pause = delay + (delay * 0.25 * random.random() if jitter else 0)
        yield min(pause, max_delay)
        delay *= exponential_base


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    exceptions: tuple = (Exception,),
):
    """
    Retry the decorated call up to ``max_retries`` extra times when it raises
    one of ``exceptions``. The final failure propagates unchanged.

    ``initial_delay=0`` retries immediately.
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            delays = backoff_delays(initial_delay, max_delay, exponential_base, jitter)
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt > max_retries:
                        raise
                    logger.debug(
                        "retrying",
                        extra={"operation": func.__name__, "attempt": attempt, "error": str(e)},
                    )
                    pause = next(delays)
                    if pause > 0:
                        time.sleep(pause)

        return wrapper
    return decorator
