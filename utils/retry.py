import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from core.errors import TransientError

logger = logging.getLogger("github_app.retry")

T = TypeVar("T")


async def retry_on_transient(func: Callable[[], Awaitable[T]], max_retries: int = 0, delay: float = 1.0) -> T:
    """Await ``func`` and retry it up to ``max_retries`` extra times on TransientError.

    Any other exception propagates immediately. The wait grows linearly
    with the attempt number.
    """
    if max_retries < 0:
        raise ValueError("max_retries must not be negative")

    name = getattr(func, "__name__", "call")
    attempts = max_retries + 1
    last_exception = None
    for attempt in range(attempts):
        try:
            return await func()
        except TransientError as e:
            last_exception = e
            if attempt < attempts - 1:
                wait = delay * (attempt + 1)
                logger.warning(f"{name} failed (attempt {attempt + 1}/{attempts}): {e}. Retrying in {wait:.1f} seconds...")
                await asyncio.sleep(wait)
            elif attempts > 1:
                logger.error(f"{name} failed after {attempts} attempts.")
    raise last_exception
