"""
Run-order scheduler.

Groups ordered work items into buckets sharing the same order key and runs
the buckets one after another, with the items of a bucket running
concurrently on the event loop.

Failure semantics:
- The first failure inside a group propagates out of that group's join
  immediately and no later group starts.
- Siblings already launched in the failing group are NOT cancelled. They
  run to completion and their results are discarded. `drain()` waits for
  them, so a caller can let them settle before closing the event loop.

Usage:
    scheduler = RunOrderScheduler(max_concurrency=50)
    results = await scheduler.run([(1, "a"), (2, "b"), (1, "c")], handle_item)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class RunOrderGroup(Generic[T]):
    """Items sharing one order value. Derived, never persisted."""
    order: int
    items: tuple[T, ...]


def group_by_run_order(items: Iterable[tuple[int, T]]) -> list[RunOrderGroup[T]]:
    """
    Group (order, item) pairs into ascending RunOrderGroups.

    Items keep their relative declaration order within a group.

    Args:
        items: Pairs of (order, item)

    Returns:
        Groups sorted by ascending order
    """
    buckets: dict[int, list[T]] = {}
    for order, item in items:
        buckets.setdefault(order, []).append(item)
    return [
        RunOrderGroup(order=order, items=tuple(buckets[order]))
        for order in sorted(buckets)
    ]


async def execute_groups(
    groups: Iterable[RunOrderGroup[T]],
    group_executor: Callable[[tuple[T, ...]], Awaitable[list[R]]],
) -> list[R]:
    """
    Drive execution group by group.

    Group N+1 does not start until group N has settled. Results are
    concatenated in group order.

    Args:
        groups: Groups in the order they must run
        group_executor: Runs all items of one group concurrently

    Returns:
        Results of every item, group by group

    Raises:
        Exception: The first failure of any group; later groups never start
    """
    results: list[R] = []
    for group in groups:
        logger.debug(f"Executing run-order group {group.order} ({len(group.items)} items)")
        results.extend(await group_executor(group.items))
    return results


class RunOrderScheduler:
    """
    Sequential-group, concurrent-item scheduler.

    Tracks launched tasks so siblings of a failed item can be awaited via
    drain() instead of being cut off when the event loop shuts down.
    """

    def __init__(self, max_concurrency: Optional[int] = None):
        """
        Initialize the scheduler.

        Args:
            max_concurrency: Upper bound on items in flight at once, or None
        """
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._max_concurrency = max_concurrency
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._in_flight: set[asyncio.Future] = set()

    async def run(
        self,
        items: Iterable[tuple[int, T]],
        execute_item: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        """
        Group items by order and execute them.

        Args:
            items: Pairs of (order, item)
            execute_item: Coroutine function run once per item

        Returns:
            Results in group order
        """
        groups = group_by_run_order(items)

        async def run_group(group_items: tuple[T, ...]) -> list[R]:
            return await self.gather(group_items, execute_item)

        return await execute_groups(groups, run_group)

    async def drain(self) -> None:
        """Wait for every launched item, including discarded siblings, to settle."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def gather(
        self,
        group_items: Iterable[T],
        execute_item: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        """Run one batch concurrently; the first failure propagates, siblings keep running."""
        tasks = [asyncio.ensure_future(self._limited(execute_item, item)) for item in group_items]
        for task in tasks:
            self._in_flight.add(task)
            task.add_done_callback(self._settled)
        return list(await asyncio.gather(*tasks))

    async def _limited(self, execute_item: Callable[[T], Awaitable[R]], item: T) -> R:
        if self._max_concurrency is None:
            return await execute_item(item)
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)
        async with self._semaphore:
            return await execute_item(item)

    def _settled(self, task: asyncio.Future) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Scheduled item failed: {error!r}")
