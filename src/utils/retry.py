"""Retry with exponential backoff for transient failures."""
import logging
import random
import time
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based), with up to 50% jitter."""
    delay = min(max_delay, base_delay * (2 ** attempt))
    if delay:
        delay = delay + random.uniform(0, delay / 2)
    return delay


def call_with_retries(
    fn: Callable[[], T],
    *,
    retry_on: Tuple[Type[BaseException], ...],
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Runs ``fn`` until it succeeds, retrying on ``retry_on`` errors. The last error is re-raised."""
    for attempt in range(max_attempts):
        try:
            return fn()
        except retry_on as exc:
            if attempt >= max_attempts - 1:
                raise
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(f"{description} failed (attempt {attempt + 1}/{max_attempts}), retrying in {delay:.2f}s: {exc}")
            if delay:
                sleep(delay)
    raise RuntimeError(f"{description}: max_attempts must be at least 1")
