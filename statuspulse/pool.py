"""Bounded-concurrency executor for running checks across many targets."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from .models import CheckResult

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def internal_error_result(item: Any, exc: Exception) -> CheckResult:
    """Default failure marker: offline with the internal-error flag set."""
    return CheckResult(online=False, internal_error=True, error_message=f"{exc.__class__.__name__}: {exc}")


async def map_bounded(
    items: Sequence[T],
    limit: int,
    mapper: Callable[[T], Awaitable[R]],
    on_error: Callable[[T, Exception], R] = internal_error_result,
) -> list[R]:
    """Run ``mapper`` over ``items`` with at most ``limit`` calls in flight.

    A fixed set of worker tasks pulls the next unstarted index from a
    shared cursor until the items are exhausted. ``results[i]`` always
    corresponds to ``items[i]``, whatever order the calls complete in.

    An exception raised by a single call is logged and replaced with
    ``on_error(item, exc)`` for that index; it never reaches the caller
    or disturbs other calls.

    Args:
        items: Inputs, in order.
        limit: Maximum number of concurrent calls (at least 1).
        mapper: Coroutine function applied to each item.
        on_error: Converts a failed call into a result.

    Returns:
        Results in input order.

    Raises:
        ValueError: If ``limit`` is less than 1.
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be at least 1 (got {limit})")

    results: list[Any] = [None] * len(items)
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            item = items[index]
            try:
                results[index] = await mapper(item)
            except Exception as e:
                logger.error("Check %d failed unexpectedly: %s", index, e, exc_info=True)
                results[index] = on_error(item, e)

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, len(items)))]
    if workers:
        await asyncio.gather(*workers)
    return results
