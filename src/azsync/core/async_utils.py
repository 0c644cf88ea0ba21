"""Async utilities for bridging blocking adapter calls into the engine's event loop."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


def make_semaphore(max_parallel: int) -> asyncio.Semaphore:
    """Create the per-run concurrency semaphore.

    Each engine run owns its semaphore; there is no process-wide limiter.
    """
    if max_parallel < 1:
        raise ValueError(
            f"max_parallel must be at least 1, got {max_parallel}"
        )
    logger.debug("Run semaphore created: max_parallel=%d", max_parallel)
    return asyncio.Semaphore(max_parallel)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread without blocking the event loop.

    Adapters are synchronous (Azure SDK clients, file I/O); the engine awaits
    them through this helper.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)

