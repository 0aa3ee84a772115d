"""Bounded worker pool for per-entry upstream calls.

A fixed number of worker coroutines pull items from a shared cursor, so at most
``concurrency`` handler calls are in flight. Each item yields an Outcome; a
handler exception is captured on its own outcome and never cancels siblings.
Callers count successes and failures after the pool has drained.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class Outcome(Generic[T, R]):
    """Result of handling one item: either a value or the exception raised."""

    item: T
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def map_with_concurrency(
    items: Sequence[T],
    concurrency: int,
    handler: Callable[[T], Awaitable[R]],
) -> list[Outcome[T, R]]:
    """Run ``handler`` over ``items`` with at most ``concurrency`` calls in flight.

    Args:
        items: Work items, processed in order of submission
        concurrency: Pool width (number of worker coroutines)
        handler: Async function applied to each item

    Returns:
        One Outcome per item; ``results[i]`` belongs to ``items[i]``

    Raises:
        ValueError: If concurrency is less than 1
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")
    if not items:
        return []

    results: list[Outcome[T, R] | None] = [None] * len(items)
    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        # The event loop is single-threaded; claiming an index never interleaves
        while cursor < len(items):
            index = cursor
            cursor += 1
            item = items[index]
            try:
                value = await handler(item)
            except Exception as e:
                results[index] = Outcome(item=item, error=e)
            else:
                results[index] = Outcome(item=item, value=value)

    workers = [worker() for _ in range(min(concurrency, len(items)))]
    await asyncio.gather(*workers)

    return [outcome for outcome in results if outcome is not None]
