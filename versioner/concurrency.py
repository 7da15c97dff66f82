"""Bounded fan-out for asynchronous per-file work."""
import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def for_each_limit(
    items: Iterable[T],
    limit: int,
    worker: Callable[[T], Awaitable[R]],
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``limit`` calls in flight.

    Once a call fails, no further items are started; calls already running
    are awaited before the first failure is re-raised.

    Args:
        items: Work items
        limit: Maximum concurrent worker calls
        worker: Coroutine function applied to each item

    Returns:
        Worker results for every item, in completion order
    """
    semaphore = asyncio.Semaphore(limit)
    results: list[R] = []
    first_error: BaseException | None = None

    async def run(item: T) -> None:
        nonlocal first_error
        try:
            results.append(await worker(item))
        except Exception as e:
            if first_error is None:
                first_error = e
        finally:
            semaphore.release()

    tasks = []
    for item in items:
        await semaphore.acquire()
        if first_error is not None:
            semaphore.release()
            break
        tasks.append(asyncio.create_task(run(item)))

    if tasks:
        await asyncio.gather(*tasks)

    if first_error is not None:
        raise first_error
    return results
